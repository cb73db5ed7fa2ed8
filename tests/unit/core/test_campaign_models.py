"""Tests for campaign request and response models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from civilyst.core.model import (
    CampaignCreate,
    CampaignRecord,
    CampaignStatus,
    CampaignUpdate,
    CampaignWithDistance,
    SearchResponse,
    VoteCounts,
)


class TestCampaignCreate:
    """Test create payload validation."""

    def test_minimal(self) -> None:
        data = CampaignCreate(title="Trees", description="Plant more trees")
        assert data.status == CampaignStatus.DRAFT
        assert data.latitude is None

    def test_blank_location_text_is_absent(self) -> None:
        data = CampaignCreate(title="Trees", description="Plant more trees", city="  ", zip_code="")
        assert data.city is None
        assert data.zip_code is None

    @pytest.mark.parametrize(
        "fields",
        [
            {"title": ""},
            {"title": "x" * 201},
            {"description": "too short"},
            {"latitude": 91, "longitude": 0},
            {"latitude": 0, "longitude": -181},
            {"latitude": 10},
            {"unknown": "field"},
        ],
    )
    def test_rejects(self, fields: dict[str, object]) -> None:
        payload = {"title": "Trees", "description": "Plant more trees", **fields}
        with pytest.raises(ValidationError):
            CampaignCreate(**payload)


class TestCampaignUpdate:
    """Test partial update validation."""

    def test_only_set_fields_are_dumped(self) -> None:
        update = CampaignUpdate(status=CampaignStatus.ACTIVE)
        assert update.model_dump(exclude_unset=True) == {"status": CampaignStatus.ACTIVE}

    def test_optional_fields_can_be_cleared(self) -> None:
        update = CampaignUpdate(city=None)
        assert update.model_dump(exclude_unset=True) == {"city": None}

    @pytest.mark.parametrize("name", ["title", "description", "status"])
    def test_required_fields_cannot_be_cleared(self, name: str) -> None:
        with pytest.raises(ValidationError):
            CampaignUpdate(**{name: None})


class TestResponseModels:
    """Test response shapes."""

    def test_vote_total(self) -> None:
        assert VoteCounts(support=2, oppose=1).model_dump() == {
            "support": 2,
            "oppose": 1,
            "total": 3,
        }

    def test_search_response_keeps_distances(self) -> None:
        """Spatial rows parse as CampaignWithDistance, text rows as CampaignRecord."""
        row = {
            "id": "a",
            "title": "t",
            "description": "d",
            "status": "ACTIVE",
            "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc).isoformat(),
        }
        response = SearchResponse(
            campaigns=[{**row, "distance_meters": 12.5}, row],
            has_more=False,
            search_type="spatial",
        )
        assert isinstance(response.campaigns[0], CampaignWithDistance)
        assert response.campaigns[0].distance_meters == 12.5
        assert type(response.campaigns[1]) is CampaignRecord
