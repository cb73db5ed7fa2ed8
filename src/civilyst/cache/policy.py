"""Cache tuning policy for Civilyst.

This is the single place where staleness tolerance is traded against hit rate.
Every TTL here is an upper bound on staleness only for writes that bypass the
invalidation triggers (a crash between commit and invalidation, or a write made
outside the API). Regular writes sweep the affected namespaces immediately, so
the effective staleness window is whichever comes first: TTL expiry or the
next write.
"""

from __future__ import annotations

from enum import IntEnum


class CacheTTL:
    """Expiry in seconds per query class."""

    # Detail views embed vote counts and are mutated by every vote.
    # Votes invalidate the exact key, so the TTL only guards missed invalidations.
    CAMPAIGN_DETAIL = 60 * 10

    # Text search results are swept on every create/update/delete. Kept short
    # because a missed sweep would hide a new campaign from every searcher.
    SEARCH_RESULTS = 60 * 5

    # Geographic queries are the most expensive producers (distance ranking)
    # and map pans generate many of them, so they get the longest TTL.
    GEO_QUERY = 60 * 15

    # City aggregates change only when a campaign in that city is written, and
    # a slightly stale count is harmless.
    CITY_STATS = 60 * 15

    # "My campaigns" lists are per user and low traffic; short TTL keeps memory
    # use bounded without hurting hit rate much.
    USER_CAMPAIGNS = 60 * 5

    DEFAULT = 60 * 5


class GeoPrecision(IntEnum):
    """Decimal places kept when bucketing coordinates into cache keys.

    One decimal place of latitude is ~11.1 km, so:
    - CITY (3 places) buckets are ~111 m across
    - STREET (4 places) buckets are ~11 m across
    """

    CITY = 3
    STREET = 4


# Approximate bucket edge in meters per precision tier (latitude direction).
BUCKET_SIZE_METERS: dict[GeoPrecision, float] = {
    GeoPrecision.CITY: 111.0,
    GeoPrecision.STREET: 11.1,
}

# A bucket may shift the search center by at most this fraction of the radius.
MAX_BUCKET_TO_RADIUS_RATIO = 0.1


def precision_for_radius(radius_km: float) -> GeoPrecision:
    """Pick the coarsest precision tier that is still safe for a radius.

    Queries are executed against the bucketed center, so a coarse bucket moves
    the circle. The tier is accepted only if its bucket is at most 10% of the
    radius: CITY for radii of roughly 1.1 km and up, STREET below that.
    """
    radius_meters = radius_km * 1000
    for tier in (GeoPrecision.CITY, GeoPrecision.STREET):
        if BUCKET_SIZE_METERS[tier] <= radius_meters * MAX_BUCKET_TO_RADIUS_RATIO:
            return tier
    return GeoPrecision.STREET
