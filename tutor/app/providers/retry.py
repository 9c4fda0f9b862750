"""Retry mechanism for provider quota errors.

Generation calls that fail with a quota-class error (HTTP 429) are retried a
fixed number of times with a fixed delay before the error is surfaced.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from tutor.app.core.logging import get_logger
from tutor.app.providers.errors import ProviderQuotaError

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Configuration for retry behavior.

    Attributes:
        max_retries: Additional attempts after the first call (default: 2)
        delay: Seconds to wait between attempts (default: 2.0)
        retryable_exceptions: Exception types that trigger a retry
    """

    max_retries: int = 2
    delay: float = 2.0
    retryable_exceptions: Tuple[Type[Exception], ...] = (ProviderQuotaError,)

    def is_retryable(self, exception: Exception) -> bool:
        return isinstance(exception, self.retryable_exceptions)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    operation: str = "generation",
) -> T:
    """Await func(), retrying retryable failures according to policy.

    Raises:
        The last exception once retries are exhausted, or any
        non-retryable exception immediately.
    """
    retry_policy = policy or RetryPolicy()

    for attempt in range(retry_policy.max_retries + 1):
        try:
            return await func()
        except Exception as e:
            if not retry_policy.is_retryable(e):
                raise

            if attempt >= retry_policy.max_retries:
                logger.warning(
                    f"Max retries ({retry_policy.max_retries}) exceeded for {operation}: "
                    f"{type(e).__name__}: {e}"
                )
                raise

            logger.warning(
                f"Retry {attempt + 1}/{retry_policy.max_retries} for {operation} "
                f"after {type(e).__name__}: {e}. Waiting {retry_policy.delay:.2f}s..."
            )
            await asyncio.sleep(retry_policy.delay)

    raise RuntimeError("unreachable")  # pragma: no cover
