from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx


# One conversation turn: {"role": "user" | "model", "parts": [{"text": ...}]}
Content = Dict[str, Any]


@dataclass(frozen=True)
class SafetySetting:
    """Provider-side content filter threshold for one harm category."""
    category: str
    threshold: str


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call generation settings.

    Attributes:
        max_output_tokens: Upper bound on generated tokens
        temperature: Sampling randomness
        safety_settings: Optional harm-category thresholds
    """
    max_output_tokens: int = 2048
    temperature: float = 0.7
    safety_settings: List[SafetySetting] = field(default_factory=list)


def user_turn(text: str) -> Content:
    """Build a single user turn."""
    return {"role": "user", "parts": [{"text": text}]}


def model_turn(text: str) -> Content:
    """Build a single model turn."""
    return {"role": "model", "parts": [{"text": text}]}


class BaseProvider(ABC):
    """Base class for generation providers.

    Subclasses can accept an external httpx.AsyncClient for connection
    pooling, or create one per request if not provided.

    A provider instance is bound to a single API key; key rotation happens
    one level up, in the ProviderClient.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            http_client: Optional shared HTTP client for connection pooling
            timeout: Request timeout in seconds
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.headers = self._build_headers()

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        """Get the HTTP client, if one was provided."""
        return self._http_client

    def _build_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a per-request client closed afterwards."""
        if self._http_client is not None:
            yield self._http_client
            return
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            await client.aclose()

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @abstractmethod
    async def generate(
        self,
        model: str,
        contents: List[Content],
        options: GenerationOptions,
    ) -> str:
        """Run one generation call and return the generated text.

        Args:
            model: Model identifier
            contents: Ordered, role-tagged conversation turns
            options: Generation settings

        Raises:
            ProviderError: On any provider-side failure
        """
        pass

    async def smoke_test(self, model: str) -> None:
        """Issue a minimal call proving the model answers with this key.

        Raises:
            ProviderError: If the model is unusable
        """
        await self.generate(
            model,
            [user_turn("Hola")],
            GenerationOptions(max_output_tokens=10),
        )
