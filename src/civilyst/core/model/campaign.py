"""Campaign models.

Request models validate user input before any cache key is derived; response
models describe the JSON shapes that are cached and returned.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

Latitude = Annotated[float, Field(ge=-90, le=90)]
Longitude = Annotated[float, Field(ge=-180, le=180)]


class CampaignStatus(str, Enum):
    """Lifecycle status of a campaign."""

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class VoteType(str, Enum):
    """Position taken by a vote."""

    SUPPORT = "SUPPORT"
    OPPOSE = "OPPOSE"


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class _LocationFields(BaseModel):
    """Shared location validation for create and update payloads."""

    @field_validator("address", "city", "state", "zip_code", mode="before", check_fields=False)
    @classmethod
    def strip_blank(cls, value: str | None) -> str | None:
        return _blank_to_none(value) if isinstance(value, str) else value

    @model_validator(mode="after")
    def coordinates_come_in_pairs(self) -> _LocationFields:
        lat = getattr(self, "latitude", None)
        lng = getattr(self, "longitude", None)
        if (lat is None) != (lng is None):
            raise ValueError("latitude and longitude must be provided together")
        return self


class CampaignCreate(_LocationFields):
    """Payload for creating a campaign."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    latitude: Latitude | None = None
    longitude: Longitude | None = None
    address: str | None = Field(default=None, max_length=500)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    zip_code: str | None = Field(default=None, max_length=20)
    status: CampaignStatus = CampaignStatus.DRAFT


class CampaignUpdate(_LocationFields):
    """Partial update; only fields present in the payload are written."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=10, max_length=5000)
    latitude: Latitude | None = None
    longitude: Longitude | None = None
    address: str | None = Field(default=None, max_length=500)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    zip_code: str | None = Field(default=None, max_length=20)
    status: CampaignStatus | None = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self) -> CampaignUpdate:
        for name in ("title", "description", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class CampaignRecord(BaseModel):
    """Campaign fields returned by search and geographic queries."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    status: CampaignStatus
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    created_at: datetime


class CampaignWithDistance(CampaignRecord):
    """Geographic query result. Distances are always meters."""

    distance_meters: float


class Campaign(CampaignRecord):
    """Full campaign as stored."""

    zip_code: str | None = None
    creator_id: str
    updated_at: datetime


class VoteCounts(BaseModel):
    support: int = 0
    oppose: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return self.support + self.oppose


class CampaignDetail(Campaign):
    """Campaign detail view with embedded vote counts."""

    votes: VoteCounts = Field(default_factory=VoteCounts)


class VoteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vote_type: VoteType


class VoteResult(BaseModel):
    campaign_id: str
    vote_type: VoteType
    votes: VoteCounts


class GeoPoint(BaseModel):
    latitude: float
    longitude: float


class CampaignPage(BaseModel):
    """A page of campaigns with keyset pagination metadata."""

    campaigns: list[CampaignRecord]
    has_more: bool
    next_cursor: str | None = None


class UserCampaignPage(BaseModel):
    """A user's own campaigns, in any status, with vote counts."""

    campaigns: list[CampaignDetail]
    has_more: bool
    next_cursor: str | None = None


class SearchResponse(CampaignPage):
    campaigns: list[CampaignWithDistance | CampaignRecord]  # type: ignore[assignment]
    search_type: Literal["database", "spatial"]
    center_point: GeoPoint | None = None
    radius_meters: float | None = None


class NearbyCampaign(CampaignWithDistance):
    distance_km: float


class NearbyResponse(BaseModel):
    campaigns: list[NearbyCampaign]
    search_point: GeoPoint
    total_found: int


class BoundsResponse(BaseModel):
    campaigns: list[CampaignRecord]
    north: float
    south: float
    east: float
    west: float
    total_found: int


class CityStats(BaseModel):
    """Aggregate geography of the active campaigns in a city."""

    campaign_count: int
    center_latitude: float
    center_longitude: float
    coverage_radius_meters: float


class CityStatsResponse(BaseModel):
    city: str
    campaign_count: int
    center_point: GeoPoint
    coverage_radius_meters: float
    coverage_radius_km: float
