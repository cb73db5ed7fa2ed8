"""Global pytest configuration and fixtures.

API and repository tests run against SQLite (aiosqlite) and the in-memory
cache store, so no external services are needed.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from civilyst.api.app import create_app
from civilyst.api.deps import get_cache
from civilyst.cache import InMemoryCacheStore, cache_stats
from civilyst.persistence.db import get_session
from civilyst.persistence.tables import Base


@pytest.fixture(autouse=True)
def reset_cache_stats() -> None:
    """Process-wide hit/miss counters start from zero in every test."""
    cache_stats.reset()


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def app(
    session_factory: async_sessionmaker[AsyncSession],
    cache_store: InMemoryCacheStore,
) -> FastAPI:
    """Application wired to the test database and cache store."""
    app = create_app()

    async def override_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    async def override_cache() -> InMemoryCacheStore:
        return cache_store

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_cache] = override_cache
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
