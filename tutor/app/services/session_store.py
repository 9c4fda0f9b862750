"""Per-student conversation state.

SessionState holds everything the conversation router reads and mutates
between requests: chat history, the current study topic, topic progress,
the pending quiz and the study documents resolved at session start.

Stores are keyed by user id. A per-user asyncio.Lock serializes the
read-modify-write cycle of one student's requests; different students
never wait on each other.
"""

import asyncio
import copy
import json
import logging
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tutor.app.core.config import settings

logger = logging.getLogger(__name__)

MAX_PROGRESS = 100


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ChatMessage:
    role: str
    content: str
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        return cls(
            role=data["role"],
            content=data["content"],
            timestamp=data.get("timestamp") or now_iso(),
        )


@dataclass
class TopicProgress:
    """Progress on one topic, 0..100. Completion is derived."""

    progress: int = 0

    @property
    def completed(self) -> bool:
        return self.progress >= MAX_PROGRESS

    @property
    def in_progress(self) -> bool:
        return 0 < self.progress < MAX_PROGRESS

    def bump(self, amount: int) -> None:
        """Advance progress, clamped to [current, 100]."""
        self.progress = min(MAX_PROGRESS, self.progress + max(0, amount))


@dataclass
class PendingQuiz:
    question: str
    options: List[str]
    correct_answer: str
    explanation: str
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingQuiz":
        return cls(
            question=data.get("question", ""),
            options=list(data.get("options") or ["", "", "", ""]),
            correct_answer=data.get("correct_answer", ""),
            explanation=data.get("explanation", ""),
            timestamp=data.get("timestamp") or now_iso(),
        )


@dataclass
class StudyDocument:
    id: int
    title: str
    topics: List[str]
    type: str
    url: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "topics": list(self.topics),
            "type": self.type,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StudyDocument":
        return cls(
            id=data["id"],
            title=data["title"],
            topics=list(data.get("topics") or []),
            type=data.get("type", "document"),
            url=data.get("url", ""),
        )


@dataclass
class SessionState:
    history: List[ChatMessage] = field(default_factory=list)
    current_topic: Optional[str] = None
    progress: Dict[str, TopicProgress] = field(default_factory=dict)
    pending_quiz: Optional[PendingQuiz] = None
    documents: List[StudyDocument] = field(default_factory=list)

    def append_exchange(
        self,
        user_text: str,
        model_text: str,
        max_messages: Optional[int] = None,
    ) -> None:
        """Append one user and one model turn, keeping the newest messages."""
        limit = max_messages or settings.history_max_messages
        self.history.append(ChatMessage(role="user", content=user_text))
        self.history.append(ChatMessage(role="model", content=model_text))
        if len(self.history) > limit:
            del self.history[: len(self.history) - limit]

    def ensure_topic(self, topic: str) -> TopicProgress:
        return self.progress.setdefault(topic, TopicProgress())

    def bump_progress(self, topic: str, amount: int) -> TopicProgress:
        entry = self.ensure_topic(topic)
        entry.bump(amount)
        return entry

    def recent_history(self, count: Optional[int] = None) -> List[ChatMessage]:
        n = count or settings.history_context_messages
        return self.history[-n:]

    def to_dict(self) -> dict:
        return {
            "history": [m.to_dict() for m in self.history],
            "current_topic": self.current_topic,
            "progress": {name: p.progress for name, p in self.progress.items()},
            "pending_quiz": self.pending_quiz.to_dict() if self.pending_quiz else None,
            "documents": [d.to_dict() for d in self.documents],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        quiz = data.get("pending_quiz")
        return cls(
            history=[ChatMessage.from_dict(m) for m in data.get("history") or []],
            current_topic=data.get("current_topic"),
            progress={
                name: TopicProgress(progress=int(value))
                for name, value in (data.get("progress") or {}).items()
            },
            pending_quiz=PendingQuiz.from_dict(quiz) if quiz else None,
            documents=[StudyDocument.from_dict(d) for d in data.get("documents") or []],
        )


class SessionStore(ABC):
    """Abstract store of SessionState keyed by user id.

    Usage:
        store = get_session_store()
        async with store.lock(user_id):
            state = await store.load(user_id)
            state.current_topic = "Cinemática"
            await store.save(user_id, state)
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def lock(self, user_id: int | str) -> asyncio.Lock:
        """Return the lock serializing this user's session updates."""
        key = str(user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @abstractmethod
    async def load(self, user_id: int | str) -> SessionState:
        """Return the user's state, or a fresh state if none is stored."""
        pass

    @abstractmethod
    async def save(self, user_id: int | str, state: SessionState) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


class InMemorySessionStore(SessionStore):
    """Process-local session storage. State is lost on restart."""

    def __init__(self) -> None:
        super().__init__()
        self._states: Dict[str, SessionState] = {}

    async def load(self, user_id: int | str) -> SessionState:
        state = self._states.get(str(user_id))
        return copy.deepcopy(state) if state is not None else SessionState()

    async def save(self, user_id: int | str, state: SessionState) -> None:
        self._states[str(user_id)] = copy.deepcopy(state)

    async def clear(self) -> None:
        self._states.clear()


class RedisSessionStore(SessionStore):
    """Redis-backed session storage, JSON encoded with a sliding TTL.

    The per-user lock is local to the process; it does not coordinate
    several application instances.
    """

    def __init__(
        self,
        redis_url: str,
        prefix: str = "studytutor:v1:session",
        ttl: int = 7 * 24 * 3600,
    ) -> None:
        import redis.asyncio as aioredis

        super().__init__()
        self._redis = aioredis.from_url(redis_url)
        self._prefix = prefix
        self._ttl = ttl

    def _key(self, user_id: int | str) -> str:
        return f"{self._prefix}:{user_id}"

    async def load(self, user_id: int | str) -> SessionState:
        raw: Any = await self._redis.get(self._key(user_id))
        if raw is None:
            return SessionState()
        try:
            return SessionState.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable session for user {user_id}: {e}")
            return SessionState()

    async def save(self, user_id: int | str, state: SessionState) -> None:
        payload = json.dumps(state.to_dict(), ensure_ascii=False)
        await self._redis.setex(self._key(user_id), self._ttl, payload)

    async def clear(self) -> None:
        async for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
            await self._redis.delete(key)

    async def close(self) -> None:
        await self._redis.aclose()


_session_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the session store selected by settings.redis_enabled."""
    global _session_store
    if _session_store is None:
        if settings.redis_enabled:
            _session_store = RedisSessionStore(settings.redis_url)
        else:
            _session_store = InMemorySessionStore()
    return _session_store


def reset_session_store() -> None:
    """Reset the global session store (used by tests)."""
    global _session_store
    _session_store = None
