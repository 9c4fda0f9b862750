"""Admission control for generation requests.

Two independent budgets are enforced:

- per user: sliding window of request timestamps (default 10 per 60s)
- per provider key: fixed-reset counter (default 50 per 60s), checked only
  when a key is supplied

The controller never retries or sleeps; callers turn a denial into an
HTTP 429 carrying time_until_next_slot().
"""

import asyncio
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional

from tutor.app.core.config import settings
from tutor.app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class KeyWindow:
    """Fixed-reset usage counter for one provider key."""
    count: int
    reset_time: float


class AdmissionController:
    """In-memory admission controller with per-user and per-key windows.

    Memory optimization:
    - Uses OrderedDict for LRU behavior on user keys
    - Evicts the least recently used 20% when max_entries is exceeded

    Suitable for single-instance deployments; state is process local.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        limit: int = 10,
        interval: float = 60.0,
        key_limit: int = 50,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the controller.

        Args:
            limit: Maximum admitted requests per user inside the interval
            interval: Window length in seconds
            key_limit: Maximum admitted requests per provider key per interval
            max_entries: Maximum number of tracked users (LRU eviction)
            clock: Monotonic time source in seconds
        """
        self.limit = limit
        self.interval = interval
        self.key_limit = key_limit
        self._max_entries = max_entries
        self._clock = clock

        self._user_windows: OrderedDict[str, Deque[float]] = OrderedDict()
        self._key_windows: dict[str, KeyWindow] = {}
        self._lock = asyncio.Lock()

    def _enforce_lru_limit(self) -> None:
        if len(self._user_windows) > self._max_entries:
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(remove_count):
                self._user_windows.popitem(last=False)

    def _prune(self, window: Deque[float], now: float) -> None:
        cutoff = now - self.interval
        while window and window[0] <= cutoff:
            window.popleft()

    def _key_allows(self, credential: str, now: float) -> bool:
        """Check and consume one slot of a key's fixed window."""
        entry = self._key_windows.get(credential)
        if entry is None or now > entry.reset_time:
            self._key_windows[credential] = KeyWindow(
                count=1, reset_time=now + self.interval
            )
            return True
        if entry.count >= self.key_limit:
            return False
        entry.count += 1
        return True

    async def try_admit(self, user_id: int | str, credential: Optional[str] = None) -> bool:
        """Decide whether a request from user_id may proceed.

        Args:
            user_id: Student identifier
            credential: Optional provider key whose budget must also pass

        Returns:
            True if admitted (the request is recorded), False otherwise
        """
        user_key = str(user_id)
        async with self._lock:
            now = self._clock()

            window = self._user_windows.get(user_key)
            if window is None:
                window = deque()
                self._user_windows[user_key] = window
                self._enforce_lru_limit()
            else:
                self._user_windows.move_to_end(user_key)

            self._prune(window, now)
            if len(window) >= self.limit:
                logger.info(
                    "Admission denied: user window full",
                    extra={"student_id": user_key},
                )
                return False

            if credential is not None and not self._key_allows(credential, now):
                logger.warning("Admission denied: provider key budget exhausted")
                return False

            window.append(now)
            return True

    async def time_until_next_slot(self, user_id: int | str) -> float:
        """Seconds until the oldest request in the user's window expires.

        Returns 0 when nothing is recorded for the user.
        """
        async with self._lock:
            window = self._user_windows.get(str(user_id))
            if not window:
                return 0.0
            now = self._clock()
            self._prune(window, now)
            if not window:
                return 0.0
            return max(0.0, self.interval - (now - window[0]))

    async def reset(self) -> None:
        """Forget every recorded request."""
        async with self._lock:
            self._user_windows.clear()
            self._key_windows.clear()


_admission_controller: Optional[AdmissionController] = None


def get_admission_controller() -> AdmissionController:
    """Get or create the process-wide admission controller."""
    global _admission_controller
    if _admission_controller is None:
        _admission_controller = AdmissionController(
            limit=settings.rate_limit_user_requests,
            interval=settings.rate_limit_window_seconds,
            key_limit=settings.rate_limit_key_requests,
            max_entries=settings.rate_limit_max_entries,
        )
    return _admission_controller


def reset_admission_controller() -> None:
    """Reset the global admission controller (used by tests)."""
    global _admission_controller
    _admission_controller = None
