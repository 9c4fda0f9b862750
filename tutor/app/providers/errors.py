"""Errors raised by generation providers."""

from typing import Optional


class ProviderError(Exception):
    """A generation call failed.

    Attributes:
        status: HTTP status reported by the provider, when there was one
    """

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class ProviderQuotaError(ProviderError):
    """The provider rejected the call for quota reasons (HTTP 429)."""

    def __init__(self, message: str = "Provider quota exceeded"):
        super().__init__(message, status=429)


class ProviderNotFoundError(ProviderError):
    """The requested model does not exist for this key (HTTP 404)."""

    def __init__(self, message: str = "Model not found"):
        super().__init__(message, status=404)


class EmptyResponseError(ProviderError):
    """The provider answered but produced no text (e.g. blocked by safety)."""

    def __init__(self, message: str = "Provider returned no text"):
        super().__init__(message)


def error_from_status(status: int, message: str) -> ProviderError:
    """Map an HTTP status to the matching provider error."""
    if status == 429:
        return ProviderQuotaError(message)
    if status == 404:
        return ProviderNotFoundError(message)
    return ProviderError(message, status=status)
