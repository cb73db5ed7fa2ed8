"""Cache store backends for Civilyst.

The store is a dumb key/value layer with TTLs:
- RedisCacheStore: shared store for multi-instance deployments (redis-py async)
- InMemoryCacheStore: single-process store for development and tests

Values are opaque bytes; serialization belongs to the accessor.
"""

from __future__ import annotations

import fnmatch
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, cast

import redis.asyncio as redis

from civilyst.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Module-level store (initialized lazily)
_store: CacheStore | None = None


class CacheStore(ABC):
    """Abstract cache store interface."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the stored value or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int) -> None:
        """Store a value that expires after ``ttl`` seconds."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete exact keys. Returns the number of keys removed."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns the count."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity."""

    async def close(self) -> None:
        """Release connections."""


class RedisCacheStore(CacheStore):
    """Cache store on top of a redis.asyncio client.

    Pattern deletes use SCAN so large keyspaces are never blocked by KEYS.
    """

    def __init__(self, client: Redis, scan_count: int = 100):
        self.client = client
        self.scan_count = scan_count

    async def get(self, key: str) -> bytes | None:
        return cast(bytes | None, await self.client.get(key))

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        await self.client.setex(key, ttl, value)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return cast(int, await self.client.delete(*keys))

    async def delete_pattern(self, pattern: str) -> int:
        deleted = 0
        batch: list[bytes | str] = []

        async for key in self.client.scan_iter(match=pattern, count=self.scan_count):
            batch.append(key)
            if len(batch) >= self.scan_count:
                deleted += cast(int, await self.client.delete(*batch))
                batch.clear()

        if batch:
            deleted += cast(int, await self.client.delete(*batch))

        return deleted

    async def ping(self) -> bool:
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except Exception:
            return False

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryCacheStore(CacheStore):
    """Process-local cache store with passive TTL expiry.

    Suitable for single-instance deployments and tests. Expired entries are
    never returned and are purged lazily on reads, pattern deletes and
    periodically on writes.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        purge_every: int = 1024,
    ):
        self._data: dict[str, tuple[bytes, float]] = {}
        self._clock = clock
        self._purge_every = purge_every
        self._writes = 0

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, expires_at in self._data.values() if expires_at > now)

    async def get(self, key: str) -> bytes | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        if ttl <= 0:
            self._data.pop(key, None)
            return
        self._data[key] = (value, self._clock() + ttl)
        self._writes += 1
        if self._writes % self._purge_every == 0:
            self.purge_expired()

    async def delete(self, *keys: str) -> int:
        deleted = 0
        now = self._clock()
        for key in keys:
            entry = self._data.pop(key, None)
            if entry is not None and entry[1] > now:
                deleted += 1
        return deleted

    async def delete_pattern(self, pattern: str) -> int:
        self.purge_expired()
        matches = [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]
        for key in matches:
            del self._data[key]
        return len(matches)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()

    def purge_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._data.items() if expires_at <= now]
        for key in expired:
            del self._data[key]
        return len(expired)


def create_cache_store(backend: str | None = None) -> CacheStore:
    """Build a store for the configured backend."""
    backend = (backend or settings.cache_backend).lower()
    if backend == "memory":
        return InMemoryCacheStore()
    if backend == "redis":
        client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            decode_responses=False,
        )
        return RedisCacheStore(client, scan_count=settings.cache_scan_count)
    raise ValueError(f"Unknown cache backend: {backend}")


async def get_cache_store() -> CacheStore:
    """Get or create the shared cache store."""
    global _store
    if _store is None:
        _store = create_cache_store()
        logger.info(f"Cache store initialized ({type(_store).__name__})")
    return _store


async def close_cache_store() -> None:
    """Close the shared cache store."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None
