"""Cache layer for Civilyst.

Provides the read-through cache in front of campaign queries:
- Deterministic cache keys for text, geographic and entity queries
- Read-through accessor with per-query-class TTLs and fail-open reads
- Write-triggered invalidation by exact key and namespace sweep
- Redis and in-memory store backends
"""

from civilyst.cache.accessor import CacheResult, CacheStats, cache_stats, get_cache_with_fallback
from civilyst.cache.invalidation import (
    CacheInvalidator,
    InvalidationReport,
    InvalidationScope,
    InvalidationTrigger,
)
from civilyst.cache.keys import CacheKeys
from civilyst.cache.policy import CacheTTL, GeoPrecision, precision_for_radius
from civilyst.cache.store import (
    CacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
    close_cache_store,
    get_cache_store,
)

__all__ = [
    # Keys and policy
    "CacheKeys",
    "CacheTTL",
    "GeoPrecision",
    "precision_for_radius",
    # Stores
    "CacheStore",
    "RedisCacheStore",
    "InMemoryCacheStore",
    "get_cache_store",
    "close_cache_store",
    # Read path
    "CacheResult",
    "CacheStats",
    "cache_stats",
    "get_cache_with_fallback",
    # Invalidation
    "CacheInvalidator",
    "InvalidationReport",
    "InvalidationScope",
    "InvalidationTrigger",
]
