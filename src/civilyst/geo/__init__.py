"""Geographic value types and query producers."""

from civilyst.geo.spatial import (
    EARTH_RADIUS_METERS,
    BoundingBox,
    GeographicPoint,
    SpatialQueries,
    bounding_box_around,
    haversine_meters,
)

__all__ = [
    "EARTH_RADIUS_METERS",
    "BoundingBox",
    "GeographicPoint",
    "SpatialQueries",
    "bounding_box_around",
    "haversine_meters",
]
