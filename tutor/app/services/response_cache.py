"""Generated-content caching service.

Wraps a CacheBackend with JSON encoding and the key scheme shared by the
content generators. Cache failures are logged and treated as misses; the
cache never breaks a request.
"""

import hashlib
import json
import logging
from typing import Any, Optional

from tutor.app.core.cache import CacheBackend, get_cache
from tutor.app.core.config import settings

logger = logging.getLogger(__name__)

# Characters of a chat message that take part in its cache key
CHAT_KEY_PREFIX_CHARS = 200


def topics_key(name: str, mime_type: str) -> str:
    return f"topics:{name}:{mime_type}"


def topic_content_key(topic: str) -> str:
    return f"topic_content:{topic}"


def examples_key(topic: str) -> str:
    return f"examples:{topic}"


def quiz_key(topic: str) -> str:
    return f"quiz:{topic}"


def video_key(topic: str) -> str:
    return f"video:{topic}"


def chat_key(user_id: int | str, message: str) -> str:
    """Key for a free-chat reply, scoped per user.

    Only the first CHAT_KEY_PREFIX_CHARS characters of the message take
    part, hashed so the key stays short and printable.
    """
    digest = hashlib.sha256(message[:CHAT_KEY_PREFIX_CHARS].encode("utf-8")).hexdigest()
    return f"chat:{user_id}:{digest}"


class ResponseCache:
    """JSON value cache with per-entry TTL.

    Usage:
        cache = ResponseCache()
        await cache.set(topic_content_key("Cinemática"), text, ttl=86400)
        text = await cache.get(topic_content_key("Cinemática"))
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        default_ttl: Optional[int] = None,
    ):
        self.backend = backend or get_cache()
        self.default_ttl = default_ttl if default_ttl is not None else settings.cache_default_ttl

    async def get(self, key: str) -> Any:
        """Return the cached value, or None on a miss or expired entry."""
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry: {key}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value, overwriting any previous entry for the key."""
        payload = json.dumps(value, ensure_ascii=False).encode("utf-8")
        try:
            await self.backend.set(key, payload, ttl if ttl is not None else self.default_ttl)
            logger.debug(f"Cached {key} ({len(payload)} bytes)")
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")


_response_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    """Get or create the process-wide response cache."""
    global _response_cache
    if _response_cache is None:
        _response_cache = ResponseCache()
    return _response_cache


def reset_response_cache() -> None:
    """Reset the global response cache (used by tests)."""
    global _response_cache
    _response_cache = None
