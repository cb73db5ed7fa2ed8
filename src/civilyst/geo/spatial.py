"""Geographic query producers.

These functions are what the read-through cache calls on a miss. Each is a
pure function of its arguments and the current table contents, which is what
makes caching them sound.

Candidate rows are narrowed with a latitude/longitude range predicate that
the ``idx_campaigns_location`` index can serve; exact great-circle distances
and ordering are computed in Python. Only ACTIVE campaigns with coordinates
are eligible. All distances are in meters.
"""

from __future__ import annotations

import heapq
import math
from dataclasses import dataclass
from sqlalchemy import ColumnElement, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civilyst.core.model import (
    CampaignRecord,
    CampaignStatus,
    CampaignWithDistance,
    CityStats,
)
from civilyst.persistence.tables import CampaignTable

# Mean Earth radius (IUGG)
EARTH_RADIUS_METERS = 6_371_008.8

# Half the equatorial circumference; no two points are farther apart
MAX_DISTANCE_METERS = math.pi * EARTH_RADIUS_METERS

MIN_COVERAGE_RADIUS_METERS = 1000.0

# Nearest-N search widens its window by this factor until it holds N hits
_NEAREST_START_RADIUS_METERS = 5_000.0
_NEAREST_GROWTH = 4.0


@dataclass(frozen=True)
class GeographicPoint:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90 <= self.latitude <= 90:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise ValueError(f"longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class BoundingBox:
    """Latitude/longitude rectangle.

    ``west > east`` describes a box crossing the antimeridian.
    """

    north: float
    south: float
    east: float
    west: float

    def __post_init__(self) -> None:
        for name in ("north", "south"):
            value = getattr(self, name)
            if not -90 <= value <= 90:
                raise ValueError(f"{name} out of range: {value}")
        for name in ("east", "west"):
            value = getattr(self, name)
            if not -180 <= value <= 180:
                raise ValueError(f"{name} out of range: {value}")
        if self.north < self.south:
            raise ValueError("north must be greater than or equal to south")

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def contains(self, latitude: float, longitude: float) -> bool:
        if not self.south <= latitude <= self.north:
            return False
        if self.crosses_antimeridian:
            return longitude >= self.west or longitude <= self.east
        return self.west <= longitude <= self.east


def haversine_meters(a: GeographicPoint, b: GeographicPoint) -> float:
    """Great-circle distance between two points."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def bounding_box_around(center: GeographicPoint, radius_meters: float) -> BoundingBox:
    """Smallest lat/lng rectangle containing the circle around ``center``."""
    delta_lat = math.degrees(radius_meters / EARTH_RADIUS_METERS)
    north = center.latitude + delta_lat
    south = center.latitude - delta_lat
    if north >= 90 or south <= -90:
        # Circle covers a pole, every longitude is in range
        return BoundingBox(north=min(north, 90), south=max(south, -90), east=180, west=-180)

    delta_lng = math.degrees(
        radius_meters / (EARTH_RADIUS_METERS * math.cos(math.radians(center.latitude)))
    )
    if delta_lng >= 180:
        return BoundingBox(north=north, south=south, east=180, west=-180)

    east = center.longitude + delta_lng
    west = center.longitude - delta_lng
    if east > 180:
        east -= 360
    if west < -180:
        west += 360
    return BoundingBox(north=north, south=south, east=east, west=west)


def _within(box: BoundingBox) -> ColumnElement[bool]:
    lat = CampaignTable.latitude.between(box.south, box.north)
    if box.crosses_antimeridian:
        lng = or_(CampaignTable.longitude >= box.west, CampaignTable.longitude <= box.east)
    else:
        lng = CampaignTable.longitude.between(box.west, box.east)
    return and_(lat, lng)


def _with_distance(row: CampaignTable, distance: float) -> CampaignWithDistance:
    record = CampaignRecord.model_validate(row)
    return CampaignWithDistance(**record.model_dump(), distance_meters=round(distance, 2))


class SpatialQueries:
    """Radius, nearest, bounds and city aggregate queries over campaigns."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _candidates(
        self, *conditions: ColumnElement[bool], status: CampaignStatus | None = None
    ) -> list[CampaignTable]:
        stmt = select(CampaignTable).where(
            CampaignTable.status == (status or CampaignStatus.ACTIVE).value,
            CampaignTable.latitude.is_not(None),
            CampaignTable.longitude.is_not(None),
            *conditions,
        )
        return list((await self.session.execute(stmt)).scalars().all())

    def _ranked(
        self, rows: list[CampaignTable], center: GeographicPoint, radius_meters: float
    ) -> list[tuple[float, str, CampaignTable]]:
        ranked = []
        for row in rows:
            distance = haversine_meters(
                center, GeographicPoint(row.latitude, row.longitude)  # type: ignore[arg-type]
            )
            if distance <= radius_meters:
                ranked.append((distance, row.id, row))
        ranked.sort(key=lambda item: (item[0], item[1]))
        return ranked

    async def find_within_radius(
        self,
        center: GeographicPoint,
        radius_meters: float,
        limit: int = 50,
        offset: int = 0,
        *,
        query: str | None = None,
        status: CampaignStatus | None = None,
        city: str | None = None,
        state: str | None = None,
    ) -> list[CampaignWithDistance]:
        """Campaigns within ``radius_meters`` of ``center``, nearest first."""
        box = bounding_box_around(center, radius_meters)
        conditions: list[ColumnElement[bool]] = [_within(box)]
        if query:
            conditions.append(
                or_(
                    CampaignTable.title.icontains(query, autoescape=True),
                    CampaignTable.description.icontains(query, autoescape=True),
                )
            )
        if city:
            conditions.append(func.lower(CampaignTable.city) == city.lower())
        if state:
            conditions.append(func.lower(CampaignTable.state) == state.lower())

        rows = await self._candidates(*conditions, status=status)
        ranked = self._ranked(rows, center, radius_meters)
        return [_with_distance(row, d) for d, _, row in ranked[offset : offset + limit]]

    async def find_nearest(
        self, center: GeographicPoint, limit: int = 10
    ) -> list[CampaignWithDistance]:
        """The ``limit`` campaigns closest to ``center``, nearest first.

        The search window starts small and grows. Once it holds ``limit``
        campaigns inside its radius no campaign outside can be closer.
        """
        radius = _NEAREST_START_RADIUS_METERS
        while True:
            radius = min(radius, MAX_DISTANCE_METERS)
            rows = await self._candidates(_within(bounding_box_around(center, radius)))
            ranked = self._ranked(rows, center, radius)
            if len(ranked) >= limit or radius >= MAX_DISTANCE_METERS:
                break
            radius *= _NEAREST_GROWTH

        nearest = heapq.nsmallest(limit, ranked, key=lambda item: (item[0], item[1]))
        return [_with_distance(row, d) for d, _, row in nearest]

    async def find_in_bounds(self, bounds: BoundingBox, limit: int = 100) -> list[CampaignRecord]:
        """Campaigns inside a map viewport, newest first."""
        stmt = (
            select(CampaignTable)
            .where(
                CampaignTable.status == CampaignStatus.ACTIVE.value,
                CampaignTable.latitude.is_not(None),
                CampaignTable.longitude.is_not(None),
                _within(bounds),
            )
            .order_by(CampaignTable.created_at.desc(), CampaignTable.id.desc())
            .limit(limit)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [CampaignRecord.model_validate(row) for row in rows]

    async def city_stats(self, city: str) -> CityStats:
        """Count, centroid and coverage radius of a city's active campaigns.

        ``city`` matches case-insensitively as a substring. The coverage
        radius is at least one kilometer; an unknown city yields zeros.
        """
        rows = await self._candidates(CampaignTable.city.icontains(city, autoescape=True))
        if not rows:
            return CityStats(
                campaign_count=0,
                center_latitude=0.0,
                center_longitude=0.0,
                coverage_radius_meters=0.0,
            )

        points = [GeographicPoint(row.latitude, row.longitude) for row in rows]  # type: ignore[arg-type]
        centroid = GeographicPoint(
            sum(p.latitude for p in points) / len(points),
            sum(p.longitude for p in points) / len(points),
        )
        farthest = max(haversine_meters(centroid, p) for p in points)
        return CityStats(
            campaign_count=len(points),
            center_latitude=centroid.latitude,
            center_longitude=centroid.longitude,
            coverage_radius_meters=round(max(farthest, MIN_COVERAGE_RADIUS_METERS), 2),
        )
