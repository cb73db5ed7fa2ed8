"""Read-through cache accessor.

Implements the cache-aside read path used by every cached endpoint:

    result = await get_cache_with_fallback(store, key, producer, ttl)
    if result.error is not None:
        raise result.error
    return result.data

- Hit: the stored JSON is decoded and returned; the producer is not called.
- Miss: the producer runs, its result is stored with the given TTL and returned.
- Producer failure: nothing is stored and the exception is returned in
  ``CacheResult.error`` for the caller to raise or handle.
- Store failure: reads degrade to a miss, writes are skipped. A cache outage
  never fails a request.

There is no per-key locking. Concurrent misses on the same key each run the
producer and the last write wins.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

import orjson

from civilyst.cache.policy import CacheTTL
from civilyst.cache.store import CacheStore
from civilyst.observability.metrics import (
    record_cache_error,
    record_cache_hit,
    record_cache_miss,
    record_cache_operation,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Producer = Callable[[], Awaitable[T]]


@dataclass
class CacheResult(Generic[T]):
    """Outcome of a read-through lookup."""

    data: T | None = None
    error: Exception | None = None
    hit: bool = False
    latency_ms: float = 0.0

    def unwrap(self) -> T:
        """Return the data or raise the producer error."""
        if self.error is not None:
            raise self.error
        return self.data  # type: ignore[return-value]


class CacheStats:
    """In-process hit/miss counters with a rolling average latency."""

    def __init__(self) -> None:
        self._zero()

    def _zero(self) -> None:
        self.hits = 0
        self.misses = 0
        self.requests = 0
        self.avg_latency_ms = 0.0
        self.last_reset = datetime.now(timezone.utc)

    def record(self, hit: bool, latency_ms: float) -> None:
        self.requests += 1
        if hit:
            self.hits += 1
        else:
            self.misses += 1
        self.avg_latency_ms += (latency_ms - self.avg_latency_ms) / self.requests

    @property
    def hit_rate(self) -> float:
        return self.hits / self.requests if self.requests else 0.0

    def snapshot(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "requests": self.requests,
            "hit_rate": round(self.hit_rate, 4),
            "avg_latency_ms": round(self.avg_latency_ms, 3),
            "last_reset": self.last_reset.isoformat(),
        }

    def reset(self) -> dict[str, Any]:
        """Zero the counters. Returns the snapshot taken before the reset."""
        previous = self.snapshot()
        self._zero()
        return previous


cache_stats = CacheStats()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


async def _read(store: CacheStore, key: str) -> Any | None:
    """Fetch and decode a cached value. Any failure counts as a miss."""
    try:
        raw = await store.get(key)
    except Exception as e:
        record_cache_error("get")
        logger.warning(
            f"Cache read failed for {key}, using producer: {e}",
            extra={"cache_key": key},
        )
        return None

    if raw is None:
        return None

    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        record_cache_error("decode")
        logger.warning(f"Ignoring undecodable cache entry {key}: {e}", extra={"cache_key": key})
        return None


async def _write(store: CacheStore, key: str, data: Any, ttl: int) -> None:
    """Serialize and store a producer result. Failures are logged, not raised."""
    try:
        payload = orjson.dumps(data)
    except TypeError as e:
        record_cache_error("encode")
        logger.warning(f"Result for {key} is not serializable, not cached: {e}")
        return

    try:
        await store.set(key, payload, ttl)
    except Exception as e:
        record_cache_error("set")
        logger.warning(f"Cache write failed for {key}: {e}", extra={"cache_key": key})


async def get_cache_with_fallback(
    store: CacheStore,
    key: str,
    producer: Producer[T],
    ttl: int = CacheTTL.DEFAULT,
    query_class: str | None = None,
) -> CacheResult[T]:
    """Return cached data for ``key`` or compute, store and return it.

    Args:
        store: Cache store to read from and populate
        key: Cache key (see CacheKeys)
        producer: Zero-argument coroutine function computing the value. It must
            return JSON-serializable data so hits and misses look the same.
        ttl: Expiry in seconds for a freshly stored value
        query_class: Metrics label, defaults to the key namespace

    Returns:
        CacheResult with either ``data`` or ``error`` set. A ``None`` result
        from the producer is returned but never stored.
    """
    query_class = query_class or key.split(":", 1)[0]
    start = time.perf_counter()

    cached = await _read(store, key)
    if cached is not None:
        latency_ms = _elapsed_ms(start)
        record_cache_hit(query_class)
        record_cache_operation("hit", latency_ms / 1000, query_class)
        cache_stats.record(True, latency_ms)
        return CacheResult(data=cached, hit=True, latency_ms=latency_ms)

    record_cache_miss(query_class)

    try:
        data = await producer()
    except Exception as e:
        latency_ms = _elapsed_ms(start)
        record_cache_operation("error", latency_ms / 1000, query_class)
        cache_stats.record(False, latency_ms)
        logger.debug(f"Producer failed for {key}: {e!r}")
        return CacheResult(error=e, latency_ms=latency_ms)

    if data is not None:
        await _write(store, key, data, ttl)

    latency_ms = _elapsed_ms(start)
    record_cache_operation("miss", latency_ms / 1000, query_class)
    cache_stats.record(False, latency_ms)
    return CacheResult(data=data, hit=False, latency_ms=latency_ms)
