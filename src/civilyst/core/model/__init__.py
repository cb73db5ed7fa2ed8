"""Campaign domain and API models."""

from civilyst.core.model.campaign import (
    BoundsResponse,
    Campaign,
    CampaignCreate,
    CampaignDetail,
    CampaignPage,
    CampaignRecord,
    CampaignStatus,
    CampaignUpdate,
    CampaignWithDistance,
    CityStats,
    CityStatsResponse,
    GeoPoint,
    NearbyCampaign,
    NearbyResponse,
    SearchResponse,
    UserCampaignPage,
    VoteCounts,
    VoteRequest,
    VoteResult,
    VoteType,
)

__all__ = [
    "BoundsResponse",
    "Campaign",
    "CampaignCreate",
    "CampaignDetail",
    "CampaignPage",
    "CampaignRecord",
    "CampaignStatus",
    "CampaignUpdate",
    "CampaignWithDistance",
    "CityStats",
    "CityStatsResponse",
    "GeoPoint",
    "NearbyCampaign",
    "NearbyResponse",
    "SearchResponse",
    "UserCampaignPage",
    "VoteCounts",
    "VoteRequest",
    "VoteResult",
    "VoteType",
]
