"""Fire-and-forget background work, such as quiz pre-generation.

Tasks run on the event loop next to request handling. A failing task is
logged and dropped; it never reaches the request that scheduled it.
"""

import asyncio
from typing import Any, Coroutine, Optional, Set

from tutor.app.core.logging import get_logger

logger = get_logger(__name__)


class BackgroundTaskRunner:
    """Schedules coroutines and keeps them alive until they finish.

    Example:
        runner = get_background_runner()
        runner.submit(pregenerate_quiz(user_id, topic), name="quiz-pregen")

        # On application shutdown:
        await runner.shutdown()
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(
                f"Background task {task.get_name()} failed: {type(error).__name__}: {error}"
            )

    async def drain(self) -> None:
        """Wait for every scheduled task to finish (used by tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel tasks still running and wait for them to unwind."""
        if not self._tasks:
            return
        logger.debug(f"Cancelling {len(self._tasks)} background task(s)")
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


_background_runner: Optional[BackgroundTaskRunner] = None


def get_background_runner() -> BackgroundTaskRunner:
    """Get or create the global background task runner."""
    global _background_runner
    if _background_runner is None:
        _background_runner = BackgroundTaskRunner()
    return _background_runner


def reset_background_runner() -> None:
    """Reset the global background task runner (used by tests)."""
    global _background_runner
    _background_runner = None
