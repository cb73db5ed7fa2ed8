"""Campaign endpoints.

Reads go through the read-through cache:

    request -> validate -> derive key -> cache hit? return : produce, store, return

Writes commit first and then invalidate:

    request -> validate -> write -> commit -> invalidate scope -> respond

Geographic reads run against the bucketed center or bounds that the cache
key encodes, so a cached entry is exactly the result for its key. Distances
stay in meters until the response builders add kilometers.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Path, Query, Response, status

from civilyst.api.deps import (
    CacheDep,
    InvalidatorDep,
    RepositoryDep,
    SessionDep,
    SpatialDep,
    UserDep,
)
from civilyst.api.errors import ForbiddenError, NotFoundError, ValidationFailedError
from civilyst.api.pagination import (
    CursorData,
    CursorParam,
    decode_cursor,
    decode_offset_cursor,
    encode_cursor,
    encode_offset_cursor,
)
from civilyst.cache import (
    CacheInvalidator,
    CacheKeys,
    CacheStore,
    CacheTTL,
    GeoPrecision,
    InvalidationScope,
    InvalidationTrigger,
    get_cache_with_fallback,
    precision_for_radius,
)
from civilyst.cache.accessor import Producer
from civilyst.cache.keys import normalize_text, round_coordinate
from civilyst.core.model import (
    BoundsResponse,
    Campaign,
    CampaignCreate,
    CampaignDetail,
    CampaignStatus,
    CampaignUpdate,
    CityStatsResponse,
    GeoPoint,
    NearbyCampaign,
    NearbyResponse,
    SearchResponse,
    UserCampaignPage,
    VoteRequest,
    VoteResult,
)
from civilyst.geo import BoundingBox, GeographicPoint
from civilyst.persistence.repositories import CampaignRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])

CampaignId = Annotated[str, Path(min_length=1, max_length=64, description="Campaign id")]


def _optional_text(value: str | None) -> str | None:
    return normalize_text(value) or None


def _keyset(cursor: str | None) -> CursorData | None:
    if not cursor:
        return None
    decoded = decode_cursor(cursor)
    if decoded is None:
        raise ValidationFailedError(f"Invalid cursor: '{cursor}'")
    return decoded


def _offset(cursor: str | None) -> int:
    if not cursor:
        return 0
    offset = decode_offset_cursor(cursor)
    if offset is None:
        raise ValidationFailedError(f"Invalid cursor: '{cursor}'")
    return offset


def _keyset_token(after: CursorData | None) -> str | None:
    """Canonical form of a keyset cursor for cache keys."""
    return encode_cursor(after.created_at, after.id) if after else None


def _offset_token(offset: int) -> str | None:
    """Canonical form of an offset cursor; offset 0 is the first page."""
    return encode_offset_cursor(offset) if offset else None


def _bucketed(latitude: float, longitude: float, precision: GeoPrecision) -> GeographicPoint:
    return GeographicPoint(
        float(round_coordinate(latitude, precision)),
        float(round_coordinate(longitude, precision)),
    )


def _km(meters: float) -> float:
    return round(meters / 1000, 3)


async def _cached(
    store: CacheStore,
    key: str,
    producer: Producer[Any],
    ttl: int,
    query_class: str,
) -> Any:
    result = await get_cache_with_fallback(store, key, producer, ttl, query_class)
    logger.debug(
        f"{query_class} {'hit' if result.hit else 'miss'} {key} ({result.latency_ms:.1f} ms)",
        extra={"cache_key": key, "cache_hit": result.hit},
    )
    return result.unwrap()


CACHE_WARNING_HEADER = "X-Cache-Invalidation"


async def _invalidate(
    invalidator: CacheInvalidator,
    scope: InvalidationScope,
    trigger: InvalidationTrigger,
    response: Response,
) -> None:
    """Clear the scope of a committed write.

    A failed step never fails the write; the response carries
    ``X-Cache-Invalidation: failed`` so the caller knows reads may be stale
    until the affected entries expire.
    """
    report = await invalidator.apply(scope, trigger)
    if not report.ok:
        response.headers[CACHE_WARNING_HEADER] = "failed"


async def _load_owned(repo: CampaignRepository, campaign_id: str, user_id: str) -> Campaign:
    campaign = await repo.get(campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign", campaign_id)
    if campaign.creator_id != user_id:
        raise ForbiddenError("Only the campaign creator can modify this campaign")
    return campaign


# =============================================================================
# Writes
# =============================================================================


@router.post("", response_model=Campaign, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    body: CampaignCreate,
    user_id: UserDep,
    session: SessionDep,
    repo: RepositoryDep,
    invalidator: InvalidatorDep,
    response: Response,
) -> Campaign:
    """Create a campaign. New campaigns default to DRAFT."""
    campaign = await repo.create(body, creator_id=user_id)
    await session.commit()

    await _invalidate(
        invalidator, InvalidationScope.for_create(user_id), InvalidationTrigger.CREATE, response
    )
    logger.info(f"Campaign created: {campaign.id}", extra={"campaign_id": campaign.id})
    return campaign


@router.patch("/{campaign_id}", response_model=Campaign)
async def update_campaign(
    body: CampaignUpdate,
    user_id: UserDep,
    session: SessionDep,
    repo: RepositoryDep,
    invalidator: InvalidatorDep,
    campaign_id: CampaignId,
    response: Response,
) -> Campaign:
    """Update a campaign. Only its creator may do so."""
    current = await _load_owned(repo, campaign_id, user_id)
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        return current

    updated = await repo.update(campaign_id, changes)
    if updated is None:
        raise NotFoundError("Campaign", campaign_id)
    await session.commit()

    await _invalidate(
        invalidator,
        InvalidationScope.for_update(campaign_id, current.creator_id),
        InvalidationTrigger.UPDATE,
        response,
    )
    logger.info(
        f"Campaign updated: {campaign_id} ({', '.join(sorted(changes))})",
        extra={"campaign_id": campaign_id},
    )
    return updated


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(
    user_id: UserDep,
    session: SessionDep,
    repo: RepositoryDep,
    invalidator: InvalidatorDep,
    campaign_id: CampaignId,
) -> Response:
    """Delete a campaign and its votes. Only its creator may do so."""
    current = await _load_owned(repo, campaign_id, user_id)
    if not await repo.delete(campaign_id):
        raise NotFoundError("Campaign", campaign_id)
    await session.commit()

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    await _invalidate(
        invalidator,
        InvalidationScope.for_delete(campaign_id, current.creator_id),
        InvalidationTrigger.DELETE,
        response,
    )
    logger.info(f"Campaign deleted: {campaign_id}", extra={"campaign_id": campaign_id})
    return response


@router.post("/{campaign_id}/votes", response_model=VoteResult)
async def vote_on_campaign(
    body: VoteRequest,
    user_id: UserDep,
    session: SessionDep,
    repo: RepositoryDep,
    invalidator: InvalidatorDep,
    campaign_id: CampaignId,
    response: Response,
) -> VoteResult:
    """Cast or change the acting user's vote."""
    campaign = await repo.get(campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign", campaign_id)

    await repo.upsert_vote(campaign_id, user_id, body.vote_type)
    await session.commit()

    await _invalidate(
        invalidator,
        InvalidationScope.for_vote(campaign_id, user_id, campaign.creator_id),
        InvalidationTrigger.VOTE,
        response,
    )
    votes = await repo.vote_counts(campaign_id)
    return VoteResult(campaign_id=campaign_id, vote_type=body.vote_type, votes=votes)


# =============================================================================
# Cached reads
# =============================================================================


@router.get("/search", response_model=SearchResponse)
async def search_campaigns(
    store: CacheDep,
    repo: RepositoryDep,
    spatial: SpatialDep,
    query: str | None = Query(default=None, max_length=200),
    latitude: float | None = Query(default=None, ge=-90, le=90),
    longitude: float | None = Query(default=None, ge=-180, le=180),
    radius_km: float = Query(default=10, ge=0.1, le=50),
    status_filter: CampaignStatus | None = Query(default=None, alias="status"),
    city: str | None = Query(default=None, max_length=100),
    state: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=20, ge=1, le=100),
    cursor: CursorParam = None,
) -> Any:
    """Search campaigns by text, location and filters.

    With ``latitude`` and ``longitude`` the search is a radius search ordered
    by distance; otherwise it is a text search ordered newest first. Only
    ACTIVE campaigns are returned unless ``status`` says otherwise.
    """
    if (latitude is None) != (longitude is None):
        raise ValidationFailedError("latitude and longitude must be provided together")

    q = _optional_text(query)
    city = _optional_text(city)
    state = _optional_text(state)
    campaign_status = status_filter or CampaignStatus.ACTIVE

    if latitude is not None and longitude is not None:
        offset = _offset(cursor)
        precision = precision_for_radius(radius_km)
        center = _bucketed(latitude, longitude, precision)
        radius_meters = radius_km * 1000
        key = CacheKeys.geo_radius(
            latitude,
            longitude,
            radius_km,
            precision,
            query=q,
            status=campaign_status,
            city=city,
            state=state,
            limit=limit,
            cursor=_offset_token(offset),
        )

        async def produce_spatial() -> dict[str, Any]:
            rows = await spatial.find_within_radius(
                center,
                radius_meters,
                limit + 1,
                offset,
                query=q,
                status=campaign_status,
                city=city,
                state=state,
            )
            has_more = len(rows) > limit
            return {
                "campaigns": [row.model_dump(mode="json") for row in rows[:limit]],
                "has_more": has_more,
                "next_cursor": encode_offset_cursor(offset + limit) if has_more else None,
                "search_type": "spatial",
                "center_point": {"latitude": center.latitude, "longitude": center.longitude},
                "radius_meters": radius_meters,
            }

        return await _cached(store, key, produce_spatial, CacheTTL.GEO_QUERY, "geo_radius")

    after = _keyset(cursor)
    key = CacheKeys.search(
        q,
        status=campaign_status,
        city=city,
        state=state,
        limit=limit,
        cursor=_keyset_token(after),
    )

    async def produce_text() -> dict[str, Any]:
        page, has_more = await repo.search(
            query=q,
            status=campaign_status,
            city=city,
            state=state,
            limit=limit,
            after=after.as_keyset() if after else None,
        )
        next_cursor = None
        if has_more and page:
            next_cursor = encode_cursor(page[-1].created_at, page[-1].id)
        return {
            "campaigns": [row.model_dump(mode="json") for row in page],
            "has_more": has_more,
            "next_cursor": next_cursor,
            "search_type": "database",
        }

    return await _cached(store, key, produce_text, CacheTTL.SEARCH_RESULTS, "search")


@router.get("/mine", response_model=UserCampaignPage)
async def list_my_campaigns(
    user_id: UserDep,
    store: CacheDep,
    repo: RepositoryDep,
    status_filter: CampaignStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=50),
    cursor: CursorParam = None,
) -> Any:
    """The acting user's campaigns in any status, newest first, with votes."""
    after = _keyset(cursor)
    key = CacheKeys.user_campaigns(
        user_id, status=status_filter, limit=limit, cursor=_keyset_token(after)
    )

    async def produce() -> dict[str, Any]:
        page, has_more = await repo.list_by_creator(
            user_id,
            status=status_filter,
            limit=limit,
            after=after.as_keyset() if after else None,
        )
        votes = await repo.vote_counts_for([c.id for c in page])
        campaigns = [
            CampaignDetail(**c.model_dump(), votes=votes[c.id]).model_dump(mode="json")
            for c in page
        ]
        next_cursor = None
        if has_more and page:
            next_cursor = encode_cursor(page[-1].created_at, page[-1].id)
        return {"campaigns": campaigns, "has_more": has_more, "next_cursor": next_cursor}

    return await _cached(store, key, produce, CacheTTL.USER_CAMPAIGNS, "user_campaigns")


@router.get("/nearby", response_model=NearbyResponse)
async def find_nearby(
    store: CacheDep,
    spatial: SpatialDep,
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    limit: int = Query(default=10, ge=1, le=50),
) -> NearbyResponse:
    """The closest ACTIVE campaigns to a point, nearest first."""
    precision = GeoPrecision.CITY
    center = _bucketed(latitude, longitude, precision)
    key = CacheKeys.geo_nearby(latitude, longitude, limit, precision)

    async def produce() -> list[dict[str, Any]]:
        rows = await spatial.find_nearest(center, limit)
        return [row.model_dump(mode="json") for row in rows]

    rows = await _cached(store, key, produce, CacheTTL.GEO_QUERY, "geo_nearby")
    return NearbyResponse(
        campaigns=[NearbyCampaign(**row, distance_km=_km(row["distance_meters"])) for row in rows],
        search_point=GeoPoint(latitude=center.latitude, longitude=center.longitude),
        total_found=len(rows),
    )


@router.get("/bounds", response_model=BoundsResponse)
async def find_in_bounds(
    store: CacheDep,
    spatial: SpatialDep,
    north: float = Query(ge=-90, le=90),
    south: float = Query(ge=-90, le=90),
    east: float = Query(ge=-180, le=180),
    west: float = Query(ge=-180, le=180),
    limit: int = Query(default=100, ge=1, le=500),
) -> BoundsResponse:
    """ACTIVE campaigns inside a map viewport, newest first.

    ``west > east`` selects a viewport crossing the antimeridian.
    """
    precision = GeoPrecision.STREET
    try:
        bounds = BoundingBox(
            north=float(round_coordinate(north, precision)),
            south=float(round_coordinate(south, precision)),
            east=float(round_coordinate(east, precision)),
            west=float(round_coordinate(west, precision)),
        )
    except ValueError as e:
        raise ValidationFailedError(str(e)) from e
    key = CacheKeys.geo_bounds(north, south, east, west, limit, precision)

    async def produce() -> list[dict[str, Any]]:
        rows = await spatial.find_in_bounds(bounds, limit)
        return [row.model_dump(mode="json") for row in rows]

    rows = await _cached(store, key, produce, CacheTTL.GEO_QUERY, "geo_bounds")
    return BoundsResponse(
        campaigns=rows,
        north=bounds.north,
        south=bounds.south,
        east=bounds.east,
        west=bounds.west,
        total_found=len(rows),
    )


@router.get("/cities/{city}/stats", response_model=CityStatsResponse)
async def get_city_stats(
    store: CacheDep,
    spatial: SpatialDep,
    city: str = Path(min_length=1, max_length=100),
) -> CityStatsResponse:
    """Count, centroid and coverage of a city's ACTIVE campaigns."""
    normalized = normalize_text(city)
    if not normalized:
        raise ValidationFailedError("city must not be blank")
    key = CacheKeys.geo_city(normalized)

    async def produce() -> dict[str, Any]:
        stats = await spatial.city_stats(normalized)
        return stats.model_dump(mode="json")

    stats = await _cached(store, key, produce, CacheTTL.CITY_STATS, "geo_city")
    return CityStatsResponse(
        city=city.strip(),
        campaign_count=stats["campaign_count"],
        center_point=GeoPoint(
            latitude=stats["center_latitude"],
            longitude=stats["center_longitude"],
        ),
        coverage_radius_meters=stats["coverage_radius_meters"],
        coverage_radius_km=_km(stats["coverage_radius_meters"]),
    )


@router.get("/{campaign_id}", response_model=CampaignDetail)
async def get_campaign(
    store: CacheDep,
    repo: RepositoryDep,
    campaign_id: CampaignId,
) -> Any:
    """Campaign detail with vote counts."""

    async def produce() -> dict[str, Any] | None:
        detail = await repo.get_detail(campaign_id)
        return detail.model_dump(mode="json") if detail is not None else None

    data = await _cached(
        store, CacheKeys.campaign(campaign_id), produce, CacheTTL.CAMPAIGN_DETAIL, "campaign"
    )
    if data is None:
        raise NotFoundError("Campaign", campaign_id)
    return data
