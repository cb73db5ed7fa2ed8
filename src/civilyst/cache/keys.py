"""Cache key schema for Civilyst.

Key format: {namespace}:{...segments}

Where:
- namespace: "campaign", "user", "search" or "geo"
- campaign:{id}                                  single campaign detail
- user:{user_id}:campaigns[:filters]             a user's own campaign list
- search:q={query}[:filters]                     text search
- geo:radius:{lat}:{lng}:r={km}[:filters]        radius search
- geo:nearby:{lat}:{lng}:limit={n}               nearest-N search
- geo:bounds:e=..:n=..:s=..:w=..:limit={n}       map viewport search
- geo:city:{city}                                city aggregate stats

Filters are encoded as sorted ``name=value`` segments. Missing filters (None or
blank strings) are left out of the key entirely, so "no filter" and
"empty filter" map to the same key and are treated the same by the query layer.
Every user-supplied value is percent-encoded, which keeps ``:`` ``=`` and glob
characters out of the key structure. Keys are plain concatenations, never
hashes, so two different queries cannot collide.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Literal
from urllib.parse import quote, unquote

from civilyst.cache.policy import GeoPrecision

Namespace = Literal["campaign", "user", "search", "geo"]

NAMESPACES: tuple[Namespace, ...] = ("campaign", "user", "search", "geo")


def normalize_text(value: str | None) -> str:
    """Trim, collapse inner whitespace and lowercase free text."""
    if value is None:
        return ""
    return " ".join(value.split()).lower()


def round_coordinate(value: float, precision: int) -> str:
    """Round a coordinate to a fixed number of decimal places.

    Rounding goes through the shortest decimal repr of the float, so values
    that print the same always land in the same bucket regardless of binary
    representation noise. Negative zero is folded into zero.
    """
    quantum = Decimal(1).scaleb(-int(precision))
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded.is_zero():
        rounded = Decimal(0).quantize(quantum)
    return format(rounded, "f")


def format_number(value: int | float) -> str:
    """Canonical text for a number: 10, 10.0 and 10.00 all become "10"."""
    normalized = Decimal(str(value)).normalize()
    if normalized.is_zero():
        return "0"
    return format(normalized, "f")


def _encode_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    text = str(value).strip()
    if not text:
        return None
    return quote(text, safe="")


def encode_filters(filters: Mapping[str, Any]) -> list[str]:
    """Encode filters as ``name=value`` segments sorted by name."""
    segments = []
    for name in sorted(filters):
        encoded = _encode_value(filters[name])
        if encoded is not None:
            segments.append(f"{name}={encoded}")
    return segments


def _join(*parts: str) -> str:
    return ":".join(part for part in parts if part != "")


class CacheKeys:
    """Cache key generator following a consistent naming convention."""

    CAMPAIGN = "campaign"
    USER = "user"
    SEARCH = "search"
    GEO = "geo"

    # -------------------------------------------------------------------------
    # Exact keys
    # -------------------------------------------------------------------------

    @classmethod
    def campaign(cls, campaign_id: str) -> str:
        """Key for a campaign detail view."""
        return f"{cls.CAMPAIGN}:{quote(campaign_id, safe='')}"

    @classmethod
    def user_campaigns(
        cls,
        user_id: str,
        status: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> str:
        """Key for a user's own campaign list."""
        filters = encode_filters({"status": status, "limit": limit, "cursor": cursor})
        return _join(cls.USER, quote(user_id, safe=""), "campaigns", *filters)

    @classmethod
    def search(cls, query: str | None, **filters: Any) -> str:
        """Key for a text search.

        City and state are matched case-insensitively by the query layer, so
        they are normalized like the query text.
        """
        normalized = dict(filters)
        for name in ("city", "state"):
            if isinstance(normalized.get(name), str):
                normalized[name] = normalize_text(normalized[name])
        q = quote(normalize_text(query), safe="")
        return _join(cls.SEARCH, f"q={q}", *encode_filters(normalized))

    @classmethod
    def geo_radius(
        cls,
        latitude: float,
        longitude: float,
        radius_km: float,
        precision: GeoPrecision = GeoPrecision.CITY,
        **filters: Any,
    ) -> str:
        """Key for a radius search around a bucketed center point."""
        normalized = dict(filters)
        for name in ("query", "city", "state"):
            if isinstance(normalized.get(name), str):
                normalized[name] = normalize_text(normalized[name])
        return _join(
            cls.GEO,
            "radius",
            round_coordinate(latitude, precision),
            round_coordinate(longitude, precision),
            f"r={format_number(radius_km)}",
            *encode_filters(normalized),
        )

    @classmethod
    def geo_nearby(
        cls,
        latitude: float,
        longitude: float,
        limit: int,
        precision: GeoPrecision = GeoPrecision.CITY,
    ) -> str:
        """Key for a nearest-N search."""
        return _join(
            cls.GEO,
            "nearby",
            round_coordinate(latitude, precision),
            round_coordinate(longitude, precision),
            *encode_filters({"limit": limit}),
        )

    @classmethod
    def geo_bounds(
        cls,
        north: float,
        south: float,
        east: float,
        west: float,
        limit: int,
        precision: GeoPrecision = GeoPrecision.STREET,
    ) -> str:
        """Key for a bounding-box search."""
        edges = {
            "n": round_coordinate(north, precision),
            "s": round_coordinate(south, precision),
            "e": round_coordinate(east, precision),
            "w": round_coordinate(west, precision),
        }
        return _join(cls.GEO, "bounds", *encode_filters({**edges, "limit": limit}))

    @classmethod
    def geo_city(cls, city: str) -> str:
        """Key for city aggregate statistics."""
        return _join(cls.GEO, "city", quote(normalize_text(city), safe=""))

    # -------------------------------------------------------------------------
    # Patterns (SCAN + DEL)
    # -------------------------------------------------------------------------

    @classmethod
    def namespace_pattern(cls, namespace: Namespace) -> str:
        """Pattern matching every key in a namespace, e.g. ``search:*``."""
        if namespace not in NAMESPACES:
            raise ValueError(f"Unknown cache namespace: {namespace}")
        return f"{namespace}:*"

    @classmethod
    def user_pattern(cls, user_id: str) -> str:
        """Pattern matching every key scoped to one user."""
        return f"{cls.USER}:{quote(user_id, safe='')}:*"

    @classmethod
    def parse_key(cls, key: str) -> dict[str, Any] | None:
        """Parse a cache key into its components.

        Returns None if the key doesn't belong to a known namespace.
        """
        parts = key.split(":")
        if len(parts) < 2 or parts[0] not in NAMESPACES or not parts[1]:
            return None

        segments = parts[1:]
        filters: dict[str, str] = {}
        positional: list[str] = []
        for segment in segments:
            name, sep, value = segment.partition("=")
            if sep:
                filters[name] = unquote(value)
            else:
                positional.append(unquote(segment))

        return {
            "namespace": parts[0],
            "positional": positional,
            "filters": filters,
        }
