"""Shared HTTP client management for connection pooling.

The client is initialized on application startup and shared by the Gemini
provider and the YouTube search client for connection reuse.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx

from tutor.app.core.config import settings


_shared_http_client: httpx.AsyncClient | None = None


def get_http_client_or_none() -> Optional[httpx.AsyncClient]:
    """Return the shared client, or None outside the application lifespan."""
    return _shared_http_client


def _build_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.httpx_connect_timeout,
        read=settings.httpx_read_timeout,
        write=settings.httpx_write_timeout,
        pool=settings.httpx_pool_timeout,
    )


def _build_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    Use in the FastAPI lifespan:

        async with init_http_client():
            yield
    """
    global _shared_http_client

    _shared_http_client = httpx.AsyncClient(
        timeout=_build_timeout(), limits=_build_limits()
    )

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None


def create_http_client(**kwargs) -> httpx.AsyncClient:
    """Create a new HTTP client with default settings.

    The returned client should be closed by the caller:

        async with create_http_client() as client:
            ...
    """
    timeout_override = kwargs.get("timeout")
    timeout = (
        httpx.Timeout(timeout_override)
        if timeout_override is not None
        else _build_timeout()
    )
    return httpx.AsyncClient(timeout=timeout, limits=_build_limits())
