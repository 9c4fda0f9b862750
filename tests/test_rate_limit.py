"""Tests for the admission controller."""

import asyncio

import pytest

from tutor.app.middleware.rate_limit import (
    AdmissionController,
    get_admission_controller,
    reset_admission_controller,
)


class TestUserWindow:
    """Per-user sliding window."""

    @pytest.fixture
    def controller(self, clock):
        return AdmissionController(limit=10, interval=60.0, clock=clock)

    @pytest.mark.asyncio
    async def test_admits_up_to_limit(self, controller):
        results = [await controller.try_admit(7) for _ in range(10)]
        assert all(results)

    @pytest.mark.asyncio
    async def test_eleventh_request_denied(self, controller):
        for _ in range(10):
            await controller.try_admit(7)
        assert await controller.try_admit(7) is False

    @pytest.mark.asyncio
    async def test_denied_request_is_not_recorded(self, controller, clock):
        """A denial must not extend the window."""
        for _ in range(10):
            await controller.try_admit(7)
        clock.advance(30)
        assert await controller.try_admit(7) is False
        clock.advance(30.5)
        assert await controller.try_admit(7) is True

    @pytest.mark.asyncio
    async def test_slot_frees_after_interval(self, controller, clock):
        for _ in range(10):
            await controller.try_admit(7)
        clock.advance(60.1)
        assert await controller.try_admit(7) is True

    @pytest.mark.asyncio
    async def test_users_are_independent(self, controller):
        for _ in range(10):
            await controller.try_admit(7)
        assert await controller.try_admit(7) is False
        assert await controller.try_admit(8) is True

    @pytest.mark.asyncio
    async def test_int_and_str_ids_share_window(self, controller):
        for _ in range(5):
            await controller.try_admit(7)
        for _ in range(5):
            await controller.try_admit("7")
        assert await controller.try_admit(7) is False


class TestTimeUntilNextSlot:
    @pytest.mark.asyncio
    async def test_zero_for_unknown_user(self, clock):
        controller = AdmissionController(clock=clock)
        assert await controller.time_until_next_slot(99) == 0.0

    @pytest.mark.asyncio
    async def test_counts_down_from_oldest_request(self, clock):
        controller = AdmissionController(limit=2, interval=60.0, clock=clock)
        await controller.try_admit(7)
        clock.advance(15)
        await controller.try_admit(7)
        clock.advance(5)

        wait = await controller.time_until_next_slot(7)
        assert wait == pytest.approx(40.0)

    @pytest.mark.asyncio
    async def test_zero_once_window_expired(self, clock):
        controller = AdmissionController(limit=1, interval=60.0, clock=clock)
        await controller.try_admit(7)
        clock.advance(61)
        assert await controller.time_until_next_slot(7) == 0.0


class TestCredentialBudget:
    @pytest.mark.asyncio
    async def test_key_budget_denies_when_exhausted(self, clock):
        controller = AdmissionController(limit=100, key_limit=3, interval=60.0, clock=clock)
        for user in range(3):
            assert await controller.try_admit(user, credential="key-a") is True
        assert await controller.try_admit(10, credential="key-a") is False
        assert await controller.try_admit(10, credential="key-b") is True

    @pytest.mark.asyncio
    async def test_key_budget_resets_after_interval(self, clock):
        controller = AdmissionController(limit=100, key_limit=1, interval=60.0, clock=clock)
        assert await controller.try_admit(1, credential="key-a") is True
        assert await controller.try_admit(2, credential="key-a") is False
        clock.advance(61)
        assert await controller.try_admit(2, credential="key-a") is True

    @pytest.mark.asyncio
    async def test_key_denial_does_not_consume_user_slot(self, clock):
        controller = AdmissionController(limit=1, key_limit=1, interval=60.0, clock=clock)
        await controller.try_admit(1, credential="key-a")
        assert await controller.try_admit(2, credential="key-a") is False
        assert await controller.try_admit(2) is True


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_admissions_never_exceed_limit(self):
        controller = AdmissionController(limit=10, interval=60.0)
        results = await asyncio.gather(*(controller.try_admit(7) for _ in range(50)))
        assert sum(results) == 10


class TestEviction:
    @pytest.mark.asyncio
    async def test_lru_eviction_bounds_tracked_users(self, clock):
        controller = AdmissionController(max_entries=10, clock=clock)
        for user in range(20):
            await controller.try_admit(user)
        assert len(controller._user_windows) <= 10
        # Most recent users are kept
        assert "19" in controller._user_windows


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_forgets_everything(self, clock):
        controller = AdmissionController(limit=1, clock=clock)
        await controller.try_admit(7)
        await controller.reset()
        assert await controller.try_admit(7) is True


def test_global_controller_is_singleton():
    first = get_admission_controller()
    assert get_admission_controller() is first
    reset_admission_controller()
    assert get_admission_controller() is not first
