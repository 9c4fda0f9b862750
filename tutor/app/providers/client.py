"""Provider client with key rotation and ordered model fallback.

Each acquisition takes the next API key from the CredentialPool and probes
the preferred model, then the fallbacks in declared order, with a minimal
smoke-test call. The first model that answers is returned as a ModelHandle
bound to that key.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from tutor.app.core.config import settings
from tutor.app.core.logging import get_logger
from tutor.app.exceptions import ProviderUnavailableError
from tutor.app.providers.base import BaseProvider, Content, GenerationOptions
from tutor.app.providers.credentials import CredentialPool
from tutor.app.providers.retry import RetryPolicy, call_with_retry

logger = get_logger(__name__)

# Builds a provider bound to one API key
ProviderBuilder = Callable[[str], BaseProvider]


@dataclass
class ModelHandle:
    """A model that passed its smoke test with a specific key."""

    provider: BaseProvider
    model_name: str
    retry_policy: RetryPolicy

    async def generate(
        self,
        contents: List[Content],
        options: GenerationOptions,
        retry: bool = True,
    ) -> str:
        """Run a generation call on this model.

        Args:
            contents: Ordered conversation turns
            options: Generation settings
            retry: Retry quota errors according to the client's policy

        Raises:
            ProviderError: When the call fails (after retries, for quota errors)
        """
        async def _call() -> str:
            return await self.provider.generate(self.model_name, contents, options)

        if not retry:
            return await _call()
        return await call_with_retry(
            _call, self.retry_policy, operation=f"generate[{self.model_name}]"
        )


class ProviderClient:
    """Rotates API keys and resolves a working model.

    Usage:
        client = ProviderClient(keys, ["gemini-1.5-flash", "gemini-pro"], build)
        handle = await client.acquire_model()
        text = await handle.generate([user_turn("...")], GenerationOptions())
    """

    def __init__(
        self,
        credentials: Sequence[str],
        models: Sequence[str],
        provider_builder: ProviderBuilder,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        if not models:
            raise ValueError("At least one model must be configured")
        self._pool = CredentialPool(credentials)
        self._models = tuple(models)
        self._build = provider_builder
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.quota_retry_attempts,
            delay=settings.quota_retry_delay,
        )

    @property
    def primary_model(self) -> str:
        return self._models[0]

    @property
    def fallback_models(self) -> tuple:
        return self._models[1:]

    @property
    def credential_count(self) -> int:
        return len(self._pool)

    def _candidates(self, preferred_model: Optional[str]) -> List[str]:
        preferred = preferred_model or self.primary_model
        return [preferred] + [m for m in self.fallback_models if m != preferred]

    async def acquire_model(self, preferred_model: Optional[str] = None) -> ModelHandle:
        """Resolve a working model with the next key in the rotation.

        Args:
            preferred_model: Model to try first (defaults to the primary)

        Raises:
            ProviderUnavailableError: If no key is configured or every model
                fails its smoke test
        """
        if self._pool.is_empty:
            logger.error("No API keys configured for the generation provider")
            raise ProviderUnavailableError()

        credential = await self._pool.next()
        provider = self._build(credential)

        for model_name in self._candidates(preferred_model):
            try:
                await provider.smoke_test(model_name)
            except Exception as e:
                logger.warning(
                    f"Model {model_name} unavailable: {type(e).__name__}: {e}",
                    extra={"model": model_name},
                )
                continue
            logger.debug(f"Model {model_name} available", extra={"model": model_name})
            return ModelHandle(
                provider=provider,
                model_name=model_name,
                retry_policy=self.retry_policy,
            )

        logger.error("No generation model available with the selected key")
        raise ProviderUnavailableError()


_provider_client: Optional[ProviderClient] = None


def _default_builder() -> ProviderBuilder:
    from tutor.app.core.http_client import get_http_client_or_none

    if settings.mock_provider:
        from tutor.app.providers.mock import MockProvider

        return lambda key: MockProvider(api_key=key)

    from tutor.app.providers.gemini import GeminiProvider

    return lambda key: GeminiProvider(
        base_url=settings.gemini_base_url,
        api_key=key,
        http_client=get_http_client_or_none(),
        timeout=settings.gemini_timeout,
    )


def get_provider_client() -> ProviderClient:
    """Get or create the process-wide provider client from settings."""
    global _provider_client
    if _provider_client is None:
        keys = settings.provider_api_keys
        if settings.mock_provider and not keys:
            keys = ["mock-key"]
        _provider_client = ProviderClient(
            credentials=keys,
            models=settings.model_chain,
            provider_builder=_default_builder(),
        )
        logger.info(
            f"Provider client ready: {len(keys)} key(s), models={settings.model_chain}"
        )
    return _provider_client


def reset_provider_client() -> None:
    """Reset the global provider client (used by tests)."""
    global _provider_client
    _provider_client = None
