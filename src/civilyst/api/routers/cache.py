"""Cache administration endpoints.

- GET    /cache/stats        - hit/miss counters since the last reset
- POST   /cache/stats/reset  - zero the counters
- DELETE /cache?pattern=...  - sweep keys matching a namespace pattern
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel

from civilyst.api.deps import CacheDep, InvalidatorDep
from civilyst.api.errors import BadRequestError
from civilyst.cache import InvalidationScope, InvalidationTrigger, cache_stats
from civilyst.cache.keys import NAMESPACES

router = APIRouter(prefix="/cache", tags=["cache"])

_MAX_PATTERN_LENGTH = 256


def _validate_pattern(pattern: str) -> str:
    """Only patterns inside a known namespace may be swept."""
    cleaned = pattern.strip()
    if not cleaned:
        raise BadRequestError("Pattern must not be empty")
    if len(cleaned) > _MAX_PATTERN_LENGTH:
        raise BadRequestError("Pattern is too long")
    namespace, sep, _ = cleaned.partition(":")
    if not sep or namespace not in NAMESPACES:
        allowed = ", ".join(f"'{ns}:'" for ns in NAMESPACES)
        raise BadRequestError(f"Pattern must start with one of {allowed}")
    return cleaned


class CacheStatsResponse(BaseModel):
    backend: str
    hits: int
    misses: int
    requests: int
    hit_rate: float
    avg_latency_ms: float
    last_reset: str


class InvalidationResult(BaseModel):
    pattern: str
    deleted_count: int
    ok: bool
    timestamp: datetime


def _stats(store: Any, snapshot: dict[str, Any]) -> CacheStatsResponse:
    return CacheStatsResponse(backend=type(store).__name__, **snapshot)


@router.get("/stats", response_model=CacheStatsResponse)
async def get_cache_stats(store: CacheDep) -> CacheStatsResponse:
    return _stats(store, cache_stats.snapshot())


@router.post("/stats/reset", response_model=CacheStatsResponse)
async def reset_cache_stats(store: CacheDep) -> CacheStatsResponse:
    """Zero the counters and return the values they held."""
    return _stats(store, cache_stats.reset())


@router.delete("", response_model=InvalidationResult)
async def purge_cache(
    invalidator: InvalidatorDep,
    pattern: str = Query(..., description="Key pattern to sweep, e.g. 'geo:*'"),
) -> InvalidationResult:
    """Delete cache entries matching a pattern.

    Entries are recomputed on the next read, so this is safe but costly.
    """
    pattern = _validate_pattern(pattern)
    report = await invalidator.apply(
        InvalidationScope(patterns=frozenset({pattern})),
        InvalidationTrigger.MANUAL,
    )
    return InvalidationResult(
        pattern=pattern,
        deleted_count=report.deleted,
        ok=report.ok,
        timestamp=datetime.now(UTC),
    )
