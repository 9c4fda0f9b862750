"""Cache abstraction layer for the tutor application.

Provides a pluggable cache backend system with in-memory and Redis
implementations. Values are raw bytes; encoding is the caller's concern.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable
import asyncio
import time


@dataclass
class _CacheEntry:
    """Internal cache entry with TTL tracking."""

    value: bytes
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        """Check if the entry has expired at the given time."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Retrieve a value, or None if not found or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int) -> None:
        """Store a value with a time-to-live in seconds."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a value from the cache."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from the cache."""
        pass


class InMemoryCache(CacheBackend):
    """In-memory cache implementation with TTL support.

    Expired entries are dropped lazily when read. Data is lost when the
    process restarts and is not shared between instances.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._data: dict[str, _CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._data[key]
                return None
            return entry.value

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        async with self._lock:
            expires_at = self._clock() + ttl if ttl > 0 else None
            self._data[key] = _CacheEntry(value=value, expires_at=expires_at)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    async def cleanup_expired(self) -> int:
        """Remove all expired entries from the cache.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            now = self._clock()
            expired_keys = [
                key for key, entry in self._data.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._data[key]
            return len(expired_keys)


class RedisCache(CacheBackend):
    """Redis-based cache implementation.

    Example:
        >>> cache = RedisCache("redis://localhost:6379/0")
        >>> await cache.set("key", b"value", ttl=300)
    """

    def __init__(self, redis_url: str, prefix: str = "studytutor:v1:cache") -> None:
        import redis.asyncio as aioredis

        self._redis_url = redis_url
        self._prefix = prefix
        self._redis = None
        self._client_class = aioredis.from_url

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def _get_client(self):
        if self._redis is None:
            self._redis = self._client_class(self._redis_url)
        return self._redis

    async def get(self, key: str) -> bytes | None:
        client = await self._get_client()
        return await client.get(self._key(key))

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        client = await self._get_client()
        if ttl > 0:
            await client.setex(self._key(key), ttl, value)
        else:
            await client.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        client = await self._get_client()
        await client.delete(self._key(key))

    async def clear(self) -> None:
        """Delete every key under this cache's prefix."""
        client = await self._get_client()
        async for key in client.scan_iter(match=f"{self._prefix}:*"):
            await client.delete(key)

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global cache instance (singleton pattern)
_cache_instance: CacheBackend | None = None


def get_cache(
    backend: str | None = None,
    redis_url: str | None = None,
    force_new: bool = False,
) -> CacheBackend:
    """Get or create the global cache instance.

    Args:
        backend: 'memory', 'redis', or None to follow settings.redis_enabled.
        redis_url: Redis connection URL. Defaults to settings.redis_url.
        force_new: If True, create a new instance even if one exists.
    """
    global _cache_instance

    if _cache_instance is not None and not force_new:
        return _cache_instance

    # Import settings here to avoid circular imports
    from tutor.app.core.config import settings

    if backend == "redis":
        use_redis = True
    elif backend == "memory":
        use_redis = False
    else:
        use_redis = settings.redis_enabled

    if use_redis:
        _cache_instance = RedisCache(redis_url or settings.redis_url)
    else:
        _cache_instance = InMemoryCache()
    return _cache_instance


def reset_cache() -> None:
    """Reset the global cache instance (used by tests)."""
    global _cache_instance
    _cache_instance = None
