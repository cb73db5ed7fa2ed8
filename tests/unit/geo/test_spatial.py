"""Tests for geographic value types and query producers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from civilyst.geo import (
    BoundingBox,
    GeographicPoint,
    SpatialQueries,
    bounding_box_around,
    haversine_meters,
)
from civilyst.persistence.tables import CampaignTable

T0 = datetime(2026, 1, 1, tzinfo=UTC)


class TestGeographicTypes:
    def test_point_validates_range(self) -> None:
        with pytest.raises(ValueError):
            GeographicPoint(91, 0)
        with pytest.raises(ValueError):
            GeographicPoint(0, -181)

    def test_bounds_validate_order(self) -> None:
        with pytest.raises(ValueError, match="north"):
            BoundingBox(north=10, south=20, east=5, west=0)

    def test_bounds_contains(self) -> None:
        box = BoundingBox(north=10, south=0, east=10, west=0)
        assert box.contains(5, 5)
        assert not box.contains(5, 11)

    def test_bounds_across_antimeridian(self) -> None:
        box = BoundingBox(north=10, south=-10, east=-170, west=170)
        assert box.crosses_antimeridian
        assert box.contains(0, 179.9)
        assert box.contains(0, -175)
        assert not box.contains(0, 0)


class TestDistance:
    def test_zero_distance(self) -> None:
        p = GeographicPoint(40.0, -73.0)
        assert haversine_meters(p, p) == 0.0

    def test_one_degree_of_longitude_at_equator(self) -> None:
        d = haversine_meters(GeographicPoint(0, 0), GeographicPoint(0, 1))
        assert d == pytest.approx(111_195, rel=1e-4)

    def test_symmetric(self) -> None:
        a = GeographicPoint(40.7128, -74.0060)
        b = GeographicPoint(51.5074, -0.1278)
        assert haversine_meters(a, b) == pytest.approx(haversine_meters(b, a))
        assert haversine_meters(a, b) == pytest.approx(5_570_000, rel=0.01)

    def test_bounding_box_contains_circle(self) -> None:
        center = GeographicPoint(40.0, -73.0)
        box = bounding_box_around(center, 10_000)
        assert box.contains(40.089, -73.0)
        assert box.contains(40.0, -73.117)
        assert not box.contains(40.1, -73.0)

    def test_bounding_box_wraps_antimeridian(self) -> None:
        box = bounding_box_around(GeographicPoint(0, 179.95), 20_000)
        assert box.crosses_antimeridian
        assert box.contains(0, -179.95)

    def test_bounding_box_covers_pole(self) -> None:
        box = bounding_box_around(GeographicPoint(89.99, 0), 5_000)
        assert box.north == 90
        assert (box.west, box.east) == (-180, 180)


def _campaign(
    id: str,
    lat: float | None,
    lng: float | None,
    *,
    status: str = "ACTIVE",
    city: str | None = None,
    title: str = "Campaign",
    minutes: int = 0,
) -> CampaignTable:
    return CampaignTable(
        id=id,
        title=title,
        description="A civic campaign description",
        status=status,
        latitude=lat,
        longitude=lng,
        city=city,
        creator_id="u1",
        created_at=T0 + timedelta(minutes=minutes),
        updated_at=T0 + timedelta(minutes=minutes),
    )


@pytest_asyncio.fixture
async def spatial(session: AsyncSession) -> SpatialQueries:
    session.add_all(
        [
            _campaign("a", 40.0, -73.0, city="Springfield", title="Bike lane", minutes=1),
            _campaign("b", 40.01, -73.0, city="Springfield", title="Park", minutes=2),
            _campaign("c", 40.1, -73.0, city="Shelbyville", title="Bike rack", minutes=3),
            _campaign("d", 40.0, -73.0, status="DRAFT", city="Springfield", minutes=4),
            _campaign("e", None, None, city="Springfield", minutes=5),
            _campaign("w", 0.0, 179.5, minutes=6),
            _campaign("x", 0.0, -179.5, minutes=7),
        ]
    )
    await session.commit()
    return SpatialQueries(session)


CENTER = GeographicPoint(40.0, -73.0)


class TestFindWithinRadius:
    @pytest.mark.asyncio
    async def test_nearest_first_active_only(self, spatial: SpatialQueries) -> None:
        rows = await spatial.find_within_radius(CENTER, 2_000)
        assert [r.id for r in rows] == ["a", "b"]
        assert rows[0].distance_meters == 0.0
        assert rows[1].distance_meters == pytest.approx(1112, rel=0.01)

    @pytest.mark.asyncio
    async def test_larger_radius(self, spatial: SpatialQueries) -> None:
        rows = await spatial.find_within_radius(CENTER, 20_000)
        assert [r.id for r in rows] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_limit_and_offset(self, spatial: SpatialQueries) -> None:
        rows = await spatial.find_within_radius(CENTER, 20_000, limit=1, offset=1)
        assert [r.id for r in rows] == ["b"]

    @pytest.mark.asyncio
    async def test_text_and_city_filters(self, spatial: SpatialQueries) -> None:
        rows = await spatial.find_within_radius(CENTER, 20_000, query="bike")
        assert [r.id for r in rows] == ["a", "c"]
        rows = await spatial.find_within_radius(CENTER, 20_000, city="springfield")
        assert [r.id for r in rows] == ["a", "b"]


class TestFindNearest:
    @pytest.mark.asyncio
    async def test_limit(self, spatial: SpatialQueries) -> None:
        rows = await spatial.find_nearest(CENTER, limit=2)
        assert [r.id for r in rows] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_widens_until_enough(self, spatial: SpatialQueries) -> None:
        """Far campaigns are found once the window has grown."""
        rows = await spatial.find_nearest(CENTER, limit=10)
        assert [r.id for r in rows][:3] == ["a", "b", "c"]
        assert {r.id for r in rows} == {"a", "b", "c", "w", "x"}
        distances = [r.distance_meters for r in rows]
        assert distances == sorted(distances)


class TestFindInBounds:
    @pytest.mark.asyncio
    async def test_newest_first(self, spatial: SpatialQueries) -> None:
        box = BoundingBox(north=40.05, south=39.95, east=-72.9, west=-73.1)
        rows = await spatial.find_in_bounds(box)
        assert [r.id for r in rows] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_across_antimeridian(self, spatial: SpatialQueries) -> None:
        box = BoundingBox(north=1, south=-1, east=-179, west=179)
        rows = await spatial.find_in_bounds(box)
        assert [r.id for r in rows] == ["x", "w"]

    @pytest.mark.asyncio
    async def test_limit(self, spatial: SpatialQueries) -> None:
        box = BoundingBox(north=90, south=-90, east=180, west=-180)
        rows = await spatial.find_in_bounds(box, limit=2)
        assert [r.id for r in rows] == ["x", "w"]


class TestCityStats:
    @pytest.mark.asyncio
    async def test_centroid_and_minimum_coverage(self, spatial: SpatialQueries) -> None:
        stats = await spatial.city_stats("springfield")
        assert stats.campaign_count == 2
        assert stats.center_latitude == pytest.approx(40.005)
        assert stats.center_longitude == pytest.approx(-73.0)
        assert stats.coverage_radius_meters == 1000.0

    @pytest.mark.asyncio
    async def test_unknown_city(self, spatial: SpatialQueries) -> None:
        stats = await spatial.city_stats("atlantis")
        assert stats.campaign_count == 0
        assert stats.coverage_radius_meters == 0.0
