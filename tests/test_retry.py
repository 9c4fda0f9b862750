"""Tests for the quota retry mechanism."""

from unittest.mock import AsyncMock, patch

import pytest

from tutor.app.providers.errors import ProviderError, ProviderQuotaError
from tutor.app.providers.retry import RetryPolicy, call_with_retry


class TestRetryPolicy:
    """Test RetryPolicy configuration."""

    def test_default_values(self):
        policy = RetryPolicy()

        assert policy.max_retries == 2
        assert policy.delay == 2.0
        assert policy.retryable_exceptions == (ProviderQuotaError,)

    def test_only_quota_errors_are_retryable(self):
        policy = RetryPolicy()
        assert policy.is_retryable(ProviderQuotaError())
        assert not policy.is_retryable(ProviderError("boom", status=500))


class TestCallWithRetry:
    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        func = AsyncMock(return_value="ok")
        assert await call_with_retry(func, RetryPolicy(delay=0)) == "ok"
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_quota_error_retried_then_succeeds(self):
        func = AsyncMock(side_effect=[ProviderQuotaError(), "ok"])
        assert await call_with_retry(func, RetryPolicy(delay=0)) == "ok"
        assert func.call_count == 2

    @pytest.mark.asyncio
    async def test_surfaces_quota_error_after_retries(self):
        func = AsyncMock(side_effect=ProviderQuotaError())
        with pytest.raises(ProviderQuotaError):
            await call_with_retry(func, RetryPolicy(max_retries=2, delay=0))
        # Initial attempt + 2 retries
        assert func.call_count == 3

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        func = AsyncMock(side_effect=ProviderError("server error", status=500))
        with pytest.raises(ProviderError, match="server error"):
            await call_with_retry(func, RetryPolicy(max_retries=3, delay=0))
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_no_retries_configured(self):
        func = AsyncMock(side_effect=ProviderQuotaError())
        with pytest.raises(ProviderQuotaError):
            await call_with_retry(func, RetryPolicy(max_retries=0, delay=0))
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_waits_fixed_delay_between_attempts(self):
        func = AsyncMock(side_effect=[ProviderQuotaError(), ProviderQuotaError(), "ok"])
        with patch("tutor.app.providers.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await call_with_retry(func, RetryPolicy(max_retries=2, delay=2.0))
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 2.0]
