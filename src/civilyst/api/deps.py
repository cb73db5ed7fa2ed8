"""Shared FastAPI dependencies for Civilyst routers.

Provides:
- Acting user resolution from the ``X-User-Id`` header
- Cache store and invalidator injection
- Repository and spatial query injection bound to the request session
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from civilyst.api.errors import UnauthorizedError
from civilyst.cache import CacheInvalidator, CacheStore, get_cache_store
from civilyst.config import settings
from civilyst.geo import SpatialQueries
from civilyst.persistence.db import get_session
from civilyst.persistence.repositories import CampaignRepository


def get_current_user_id(
    x_user_id: Annotated[str | None, Header(description="Acting user id")] = None,
) -> str | None:
    """Acting user, falling back to the configured default. None if anonymous."""
    user_id = (x_user_id or "").strip() or settings.default_user_id
    return user_id or None


def require_user_id(
    user_id: Annotated[str | None, Depends(get_current_user_id)],
) -> str:
    if user_id is None:
        raise UnauthorizedError("X-User-Id header is required")
    return user_id


async def get_cache() -> CacheStore:
    return await get_cache_store()


def get_invalidator(store: Annotated[CacheStore, Depends(get_cache)]) -> CacheInvalidator:
    return CacheInvalidator(store)


def get_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CampaignRepository:
    return CampaignRepository(session)


def get_spatial(session: Annotated[AsyncSession, Depends(get_session)]) -> SpatialQueries:
    return SpatialQueries(session)


SessionDep = Annotated[AsyncSession, Depends(get_session)]
CacheDep = Annotated[CacheStore, Depends(get_cache)]
InvalidatorDep = Annotated[CacheInvalidator, Depends(get_invalidator)]
RepositoryDep = Annotated[CampaignRepository, Depends(get_repository)]
SpatialDep = Annotated[SpatialQueries, Depends(get_spatial)]
UserDep = Annotated[str, Depends(require_user_id)]
