"""Generation providers package for the study tutor.

This package provides:
- Base provider interface and request types (BaseProvider, GenerationOptions)
- Provider implementations (GeminiProvider, MockProvider)
- Key rotation (CredentialPool)
- Model resolution with ordered fallback (ProviderClient, ModelHandle)
- Retry mechanism for quota errors (RetryPolicy, call_with_retry)
"""

from tutor.app.providers.base import (
    BaseProvider,
    Content,
    GenerationOptions,
    SafetySetting,
    model_turn,
    user_turn,
)
from tutor.app.providers.client import (
    ModelHandle,
    ProviderClient,
    get_provider_client,
    reset_provider_client,
)
from tutor.app.providers.credentials import CredentialPool
from tutor.app.providers.errors import (
    EmptyResponseError,
    ProviderError,
    ProviderNotFoundError,
    ProviderQuotaError,
)
from tutor.app.providers.gemini import GeminiProvider
from tutor.app.providers.mock import MockProvider
from tutor.app.providers.retry import RetryPolicy, call_with_retry

__all__ = [
    # Base
    "BaseProvider",
    "Content",
    "GenerationOptions",
    "SafetySetting",
    "model_turn",
    "user_turn",
    # Providers
    "GeminiProvider",
    "MockProvider",
    # Client
    "CredentialPool",
    "ModelHandle",
    "ProviderClient",
    "get_provider_client",
    "reset_provider_client",
    # Errors
    "EmptyResponseError",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderQuotaError",
    # Retry
    "RetryPolicy",
    "call_with_retry",
]
