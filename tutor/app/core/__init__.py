"""Core utilities for the tutor application."""

from tutor.app.core.cache import (
    CacheBackend,
    InMemoryCache,
    RedisCache,
    get_cache,
    reset_cache,
)
from tutor.app.core.config import settings
from tutor.app.core.logging import get_log_context, get_logger, setup_logging
from tutor.app.core.security import TokenClaims, decode_access_token

__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
    "get_cache",
    "reset_cache",
    "settings",
    "get_log_context",
    "get_logger",
    "setup_logging",
    "TokenClaims",
    "decode_access_token",
]
