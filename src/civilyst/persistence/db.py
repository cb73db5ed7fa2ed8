"""Database engine and request sessions.

PostgreSQL through asyncpg in production; ``sqlite+aiosqlite`` URLs work for
local runs and tests. The engine is built lazily from settings on first use
and torn down by ``close_db`` at shutdown.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from civilyst.config import settings

_engine: AsyncEngine | None = None
_sessions: async_sessionmaker[AsyncSession] | None = None


def _engine_options(url: str) -> dict[str, Any]:
    """Connection pool arguments for a database URL."""
    if url.startswith("sqlite"):
        # aiosqlite rejects QueuePool sizing
        return {"echo": False}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
        "echo": settings.env == "dev",
    }


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        url = settings.database_url
        _engine = create_async_engine(url, **_engine_options(url))
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _sessions
    if _sessions is None:
        # Committed rows stay readable so handlers can return them after commit
        _sessions = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _sessions


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request.

    Handlers commit explicitly. Anything left uncommitted when the handler
    raises is rolled back before the session is returned to the pool.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables.

    Convenient for SQLite and first runs; managed databases are migrated
    with the Alembic revisions under ``persistence/migrations``.
    """
    from civilyst.persistence.tables import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _sessions
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None
