"""Tests for per-student session state and its stores."""

import asyncio

import pytest

from tutor.app.core.config import settings
from tutor.app.services.session_store import (
    InMemorySessionStore,
    PendingQuiz,
    RedisSessionStore,
    SessionState,
    StudyDocument,
    TopicProgress,
    get_session_store,
)


class TestTopicProgress:
    def test_bump_clamps_to_100(self):
        progress = TopicProgress(95)
        progress.bump(20)
        assert progress.progress == 100
        assert progress.completed
        assert not progress.in_progress

    def test_negative_bump_ignored(self):
        progress = TopicProgress(30)
        progress.bump(-10)
        assert progress.progress == 30

    def test_flags(self):
        assert not TopicProgress(0).in_progress
        assert TopicProgress(10).in_progress
        assert not TopicProgress(99).completed


class TestSessionState:
    def test_history_keeps_newest_messages(self):
        state = SessionState()
        for n in range(15):
            state.append_exchange(f"u{n}", f"m{n}", max_messages=20)

        assert len(state.history) == 20
        assert state.history[0].content == "u5"
        assert state.history[-1].content == "m14"
        assert [m.role for m in state.history[:2]] == ["user", "model"]

    def test_recent_history(self):
        state = SessionState()
        for n in range(4):
            state.append_exchange(f"u{n}", f"m{n}")
        assert [m.content for m in state.recent_history(5)] == ["m1", "u2", "m2", "u3", "m3"]

    def test_ensure_topic_is_idempotent(self):
        state = SessionState()
        state.bump_progress("Ondas", 10)
        state.ensure_topic("Ondas")
        assert state.progress["Ondas"].progress == 10

    def test_dict_round_trip(self):
        state = SessionState(current_topic="Ondas")
        state.append_exchange("hola", "qué tal")
        state.bump_progress("Ondas", 30)
        state.pending_quiz = PendingQuiz("¿?", ["a", "b", "c", "d"], "C", "porque")
        state.documents = [StudyDocument(1, "Ondas.pdf", ["Ondas"], "pdf", "https://x")]

        restored = SessionState.from_dict(state.to_dict())

        assert restored.current_topic == "Ondas"
        assert restored.progress["Ondas"].progress == 30
        assert restored.pending_quiz.correct_answer == "C"
        assert restored.documents[0].topics == ["Ondas"]
        assert [m.content for m in restored.history] == ["hola", "qué tal"]

    def test_from_empty_dict(self):
        state = SessionState.from_dict({})
        assert state.history == []
        assert state.pending_quiz is None


class TestInMemorySessionStore:
    @pytest.mark.asyncio
    async def test_load_unknown_user_returns_fresh_state(self):
        store = InMemorySessionStore()
        state = await store.load(7)
        assert state.current_topic is None
        assert state.progress == {}

    @pytest.mark.asyncio
    async def test_save_and_load(self):
        store = InMemorySessionStore()
        state = SessionState(current_topic="Ondas")
        await store.save(7, state)
        assert (await store.load(7)).current_topic == "Ondas"

    @pytest.mark.asyncio
    async def test_unsaved_mutations_are_not_visible(self):
        store = InMemorySessionStore()
        await store.save(7, SessionState(current_topic="Ondas"))

        state = await store.load(7)
        state.current_topic = "Calor"

        assert (await store.load(7)).current_topic == "Ondas"

    @pytest.mark.asyncio
    async def test_users_are_isolated(self):
        store = InMemorySessionStore()
        await store.save(7, SessionState(current_topic="Ondas"))
        assert (await store.load(8)).current_topic is None

    @pytest.mark.asyncio
    async def test_clear(self):
        store = InMemorySessionStore()
        await store.save(7, SessionState(current_topic="Ondas"))
        await store.clear()
        assert (await store.load(7)).current_topic is None


class TestLocks:
    def test_same_user_same_lock(self):
        store = InMemorySessionStore()
        lock = store.lock(7)
        assert store.lock("7") is lock
        assert store.lock(8) is not lock

    @pytest.mark.asyncio
    async def test_lock_serializes_read_modify_write(self):
        store = InMemorySessionStore()

        async def bump():
            async with store.lock(7):
                state = await store.load(7)
                await asyncio.sleep(0)
                state.bump_progress("Ondas", 1)
                await store.save(7, state)

        await asyncio.gather(*(bump() for _ in range(30)))

        assert (await store.load(7)).progress["Ondas"].progress == 30


class TestFactory:
    def test_memory_store_by_default(self, monkeypatch):
        monkeypatch.setattr(settings, "redis_enabled", False)
        store = get_session_store()
        assert isinstance(store, InMemorySessionStore)
        assert get_session_store() is store

    def test_redis_store_when_enabled(self, monkeypatch):
        monkeypatch.setattr(settings, "redis_enabled", True)
        monkeypatch.setattr(settings, "redis_url", "redis://localhost:6379/9")
        store = get_session_store()
        assert isinstance(store, RedisSessionStore)
        assert store._key(7) == "studytutor:v1:session:7"
