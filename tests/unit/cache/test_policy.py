"""Tests for TTL and precision policy."""

import pytest

from civilyst.cache.policy import (
    BUCKET_SIZE_METERS,
    MAX_BUCKET_TO_RADIUS_RATIO,
    CacheTTL,
    GeoPrecision,
    precision_for_radius,
)


class TestCacheTTL:
    def test_values(self) -> None:
        assert CacheTTL.CAMPAIGN_DETAIL == 600
        assert CacheTTL.SEARCH_RESULTS == 300
        assert CacheTTL.GEO_QUERY == 900
        assert CacheTTL.CITY_STATS == 900
        assert CacheTTL.USER_CAMPAIGNS == 300
        assert CacheTTL.DEFAULT == 300


class TestPrecisionForRadius:
    @pytest.mark.parametrize(
        ("radius_km", "expected"),
        [
            (50, GeoPrecision.CITY),
            (10, GeoPrecision.CITY),
            (1.2, GeoPrecision.CITY),
            (1.0, GeoPrecision.STREET),
            (0.1, GeoPrecision.STREET),
        ],
    )
    def test_tier(self, radius_km: float, expected: GeoPrecision) -> None:
        assert precision_for_radius(radius_km) == expected

    @pytest.mark.parametrize("radius_km", [1.2, 2, 10, 50])
    def test_city_bucket_within_tolerance(self, radius_km: float) -> None:
        """The chosen bucket shifts the center by at most 10% of the radius."""
        tier = precision_for_radius(radius_km)
        assert BUCKET_SIZE_METERS[tier] <= radius_km * 1000 * MAX_BUCKET_TO_RADIUS_RATIO
