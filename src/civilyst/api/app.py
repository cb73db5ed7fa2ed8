"""FastAPI application factory for Civilyst.

Creates the application with:
- Campaign endpoints backed by the geo-aware read-through cache
- Cache administration, health and Prometheus metrics endpoints
- Lifecycle management for the database and the cache store
- Result/Message error responses
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.types import ExceptionHandler

from civilyst import __version__
from civilyst.api.errors import (
    ApiError,
    api_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from civilyst.api.middleware import CorrelationMiddleware
from civilyst.api.routers import cache, campaigns, health
from civilyst.api.routers import metrics as metrics_router
from civilyst.cache import close_cache_store, get_cache_store
from civilyst.config import settings
from civilyst.observability import configure_logging
from civilyst.observability.metrics import MetricsMiddleware, get_metrics
from civilyst.persistence.db import close_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup: configure logging and metrics, create tables if missing,
    connect the cache store. On shutdown: close the cache store and the
    database pool.
    """
    configure_logging(
        json_format=settings.env != "dev",
        level=settings.log_level,
    )
    get_metrics()

    logger.info(f"Starting Civilyst ({settings.env})")
    await init_db()
    store = await get_cache_store()
    if not await store.ping():
        logger.warning("Cache store unreachable at startup, reads will use the database")
    logger.info("Civilyst startup complete")

    yield

    logger.info("Shutting down Civilyst")
    await close_cache_store()
    await close_db()
    logger.info("Civilyst shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Civilyst",
        description="Civic campaigns with geo-aware cached search",
        version=__version__,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(CorrelationMiddleware)
    if settings.enable_metrics:
        app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(ApiError, cast(ExceptionHandler, api_exception_handler))
    app.add_exception_handler(
        RequestValidationError, cast(ExceptionHandler, validation_exception_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)
    if settings.enable_metrics:
        app.include_router(metrics_router.router)

    app.include_router(campaigns.router)
    app.include_router(cache.router)

    return app
