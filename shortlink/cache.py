"""Best-effort resolution cache: short code to long URL.

The cache only serves the redirect path. It is never the system of record,
so losing it costs latency, never correctness.

Flow Diagram: Cache Variants
=============================
::
    ┌──────────────────┐
    │ build_cache()    │
    └────────┬─────────┘
    ENABLED? │
    ┌────────┴────────┐
    │ YES             │ NO
    ▼                 ▼
┌──────────────┐  ┌──────────────┐
│ RedisURLCache│  │ NullURLCache │
│ SET/GET/DEL  │  │ always miss  │
└──────────────┘  └──────────────┘

How to Use
===========
**Step 1: Build once at startup**::
    cache = build_cache(settings, redis.from_url(settings.REDIS_URL, decode_responses=True))

**Step 2: Read and populate**::
    long_url = await cache.get("aZ3kP9q")
    await cache.set("aZ3kP9q", "https://example.com", ttl=300)

**Step 3: Invalidate on mutation**::
    await cache.delete("aZ3kP9q")

Key Behaviours
===============
- Keys are ``url:<short_code>``; values are the bare long URL.
- Invalidation is a single ``DEL``, so readers see the old value or a miss,
  never a partial one.
- Redis failures surface as ``CacheError``; callers degrade to a miss.

Classes:
    URLCache:  Abstract cache contract.
    RedisURLCache:  redis.asyncio implementation.
    NullURLCache:  No-op implementation.
"""

from abc import ABC, abstractmethod

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortlink.config import Settings
from shortlink.errors import CacheError

__all__ = ["NullURLCache", "RedisURLCache", "URLCache", "build_cache"]

CACHE_KEY_PREFIX = "url:"


class URLCache(ABC):
    @abstractmethod
    async def set(self, short_code: str, long_url: str, ttl: int) -> None:
        pass

    @abstractmethod
    async def get(self, short_code: str) -> str | None:
        """Return the cached long URL, or None on a miss."""

    @abstractmethod
    async def delete(self, short_code: str) -> None:
        pass

    @abstractmethod
    async def ping(self) -> bool:
        pass


class RedisURLCache(URLCache):
    """Cache backed by a shared, long-lived ``redis.asyncio`` client."""

    def __init__(self, client: redis.Redis, key_prefix: str = CACHE_KEY_PREFIX):
        assert client is not None, "client must not be None"
        self._client = client
        self._key_prefix = key_prefix

    def key(self, short_code: str) -> str:
        return f"{self._key_prefix}{short_code}"

    async def set(self, short_code: str, long_url: str, ttl: int) -> None:
        assert ttl > 0, f"ttl must be positive, got {ttl!r}"
        try:
            await self._client.set(self.key(short_code), long_url, ex=ttl)
        except RedisError as exc:
            raise CacheError(f"cache set failed for {short_code}", original_error=exc) from exc

    async def get(self, short_code: str) -> str | None:
        try:
            value = await self._client.get(self.key(short_code))
        except RedisError as exc:
            raise CacheError(f"cache get failed for {short_code}", original_error=exc) from exc

        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value or None

    async def delete(self, short_code: str) -> None:
        try:
            await self._client.delete(self.key(short_code))
        except RedisError as exc:
            raise CacheError(f"cache delete failed for {short_code}", original_error=exc) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            raise CacheError("cache unavailable", original_error=exc) from exc


class NullURLCache(URLCache):
    """Cache that stores nothing. Every read is a miss."""

    async def set(self, short_code: str, long_url: str, ttl: int) -> None:
        return None

    async def get(self, short_code: str) -> str | None:
        return None

    async def delete(self, short_code: str) -> None:
        return None

    async def ping(self) -> bool:
        return True


def build_cache(settings: Settings, client: redis.Redis | None) -> URLCache:
    if not settings.CACHE_ENABLED or client is None:
        return NullURLCache()
    return RedisURLCache(client)
