"""Health probes.

- GET /health/live  - process is up
- GET /health/ready - database and cache store reachable

The database is required. The cache store is not: reads fall back to the
database when it is down, so an unreachable cache reports ``degraded``
with status 200 instead of failing readiness.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from enum import Enum

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from civilyst.api.deps import CacheDep, SessionDep

router = APIRouter(prefix="/health", tags=["health"])

PROBE_TIMEOUT_SECONDS = 5.0


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None


class Readiness(BaseModel):
    status: HealthStatus
    components: list[ComponentHealth]


async def _select_one(session: AsyncSession) -> bool:
    await session.execute(text("SELECT 1"))
    return True


async def probe(name: str, check: Awaitable[bool], on_failure: HealthStatus) -> ComponentHealth:
    """Run one check with a timeout; failures map to ``on_failure``."""
    start = time.perf_counter()
    message = None
    try:
        ok = await asyncio.wait_for(check, PROBE_TIMEOUT_SECONDS)
        if not ok:
            message = f"{name} check failed"
    except asyncio.TimeoutError:
        ok, message = False, f"{name} check timed out"
    except Exception as e:
        ok, message = False, str(e)
    return ComponentHealth(
        name=name,
        status=HealthStatus.HEALTHY if ok else on_failure,
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
        message=message,
    )


def overall_status(components: list[ComponentHealth]) -> HealthStatus:
    statuses = {c.status for c in components}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", response_model=Readiness)
async def ready(session: SessionDep, store: CacheDep) -> ORJSONResponse:
    """200 when healthy or degraded, 503 when the database is unreachable."""
    components = list(
        await asyncio.gather(
            probe("database", _select_one(session), HealthStatus.UNHEALTHY),
            probe("cache", store.ping(), HealthStatus.DEGRADED),
        )
    )
    report = Readiness(status=overall_status(components), components=components)
    return ORJSONResponse(
        report.model_dump(mode="json", exclude_none=True),
        status_code=503 if report.status == HealthStatus.UNHEALTHY else 200,
    )
