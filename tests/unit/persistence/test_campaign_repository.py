"""Tests for the campaign repository."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from civilyst.core.model import CampaignCreate, CampaignStatus, VoteType
from civilyst.persistence.repositories import CampaignRepository


def _create(title: str, **overrides: object) -> CampaignCreate:
    data: dict[str, object] = {
        "title": title,
        "description": f"{title} for the neighborhood",
        "status": CampaignStatus.ACTIVE,
    }
    data.update(overrides)
    return CampaignCreate(**data)  # type: ignore[arg-type]


@pytest.fixture
def repo(session: AsyncSession) -> CampaignRepository:
    return CampaignRepository(session)


class TestCrud:
    @pytest.mark.asyncio
    async def test_create_and_get(self, repo: CampaignRepository) -> None:
        created = await repo.create(_create("Bike Lane on Elm St", city="Springfield"), "u1")
        await repo.session.commit()

        fetched = await repo.get(created.id)

        assert fetched is not None
        assert fetched.title == "Bike Lane on Elm St"
        assert fetched.creator_id == "u1"
        assert fetched.status == CampaignStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_create_defaults_to_draft(self, repo: CampaignRepository) -> None:
        created = await repo.create(
            CampaignCreate(title="Draft", description="Not published yet"), "u1"
        )
        assert created.status == CampaignStatus.DRAFT

    @pytest.mark.asyncio
    async def test_get_missing(self, repo: CampaignRepository) -> None:
        assert await repo.get("missing") is None
        assert await repo.get_detail("missing") is None

    @pytest.mark.asyncio
    async def test_update(self, repo: CampaignRepository) -> None:
        created = await repo.create(_create("Old title"), "u1")

        updated = await repo.update(
            created.id, {"title": "New title", "status": CampaignStatus.COMPLETED}
        )

        assert updated is not None
        assert updated.title == "New title"
        assert updated.status == CampaignStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_update_missing(self, repo: CampaignRepository) -> None:
        assert await repo.update("missing", {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_delete_removes_votes(self, repo: CampaignRepository) -> None:
        created = await repo.create(_create("Doomed"), "u1")
        await repo.upsert_vote(created.id, "u2", VoteType.SUPPORT)

        assert await repo.delete(created.id) is True
        assert await repo.get(created.id) is None
        assert (await repo.vote_counts(created.id)).total == 0
        assert await repo.delete(created.id) is False


class TestSearch:
    @pytest.mark.asyncio
    async def test_matches_title_or_description_case_insensitively(
        self, repo: CampaignRepository
    ) -> None:
        await repo.create(_create("Bike Lane on Elm St"), "u1")
        await repo.create(_create("Park", description="More BIKE LANE parking"), "u1")
        await repo.create(_create("Library hours"), "u1")

        page, has_more = await repo.search(query="bike lane")

        assert {c.title for c in page} == {"Bike Lane on Elm St", "Park"}
        assert has_more is False

    @pytest.mark.asyncio
    async def test_active_only_by_default(self, repo: CampaignRepository) -> None:
        await repo.create(_create("Active one"), "u1")
        await repo.create(_create("Draft one", status=CampaignStatus.DRAFT), "u1")

        page, _ = await repo.search()
        assert [c.title for c in page] == ["Active one"]

        page, _ = await repo.search(status=CampaignStatus.DRAFT)
        assert [c.title for c in page] == ["Draft one"]

    @pytest.mark.asyncio
    async def test_city_and_state_filters(self, repo: CampaignRepository) -> None:
        await repo.create(_create("A", city="Springfield", state="IL"), "u1")
        await repo.create(_create("B", city="Springfield", state="MA"), "u1")

        page, _ = await repo.search(city="springfield", state="il")

        assert [c.title for c in page] == ["A"]

    @pytest.mark.asyncio
    async def test_like_wildcards_are_literal(self, repo: CampaignRepository) -> None:
        await repo.create(_create("100% renewable"), "u1")
        await repo.create(_create("Other"), "u1")

        page, _ = await repo.search(query="%")

        assert [c.title for c in page] == ["100% renewable"]

    @pytest.mark.asyncio
    async def test_keyset_pagination(self, repo: CampaignRepository) -> None:
        for i in range(5):
            await repo.create(_create(f"Campaign {i}"), "u1")

        first, has_more = await repo.search(limit=2)
        assert has_more is True
        second, _ = await repo.search(limit=2, after=(first[-1].created_at, first[-1].id))
        third, has_more = await repo.search(limit=2, after=(second[-1].created_at, second[-1].id))

        titles = [c.title for c in first + second + third]
        assert sorted(titles) == [f"Campaign {i}" for i in range(5)]
        keys = [(c.created_at, c.id) for c in first + second + third]
        assert keys == sorted(keys, reverse=True)
        assert has_more is False


class TestVotes:
    @pytest.mark.asyncio
    async def test_upsert_replaces_previous_vote(self, repo: CampaignRepository) -> None:
        created = await repo.create(_create("Vote me"), "u1")

        await repo.upsert_vote(created.id, "u2", VoteType.SUPPORT)
        await repo.upsert_vote(created.id, "u3", VoteType.SUPPORT)
        await repo.upsert_vote(created.id, "u2", VoteType.OPPOSE)

        counts = await repo.vote_counts(created.id)
        assert (counts.support, counts.oppose, counts.total) == (1, 1, 2)

    @pytest.mark.asyncio
    async def test_detail_embeds_counts(self, repo: CampaignRepository) -> None:
        created = await repo.create(_create("Vote me"), "u1")
        await repo.upsert_vote(created.id, "u2", VoteType.SUPPORT)

        detail = await repo.get_detail(created.id)

        assert detail is not None
        assert detail.votes.support == 1

    @pytest.mark.asyncio
    async def test_counts_for_many(self, repo: CampaignRepository) -> None:
        a = await repo.create(_create("A"), "u1")
        b = await repo.create(_create("B"), "u1")
        await repo.upsert_vote(a.id, "u2", VoteType.OPPOSE)

        counts = await repo.vote_counts_for([a.id, b.id])

        assert counts[a.id].oppose == 1
        assert counts[b.id].total == 0

    @pytest.mark.asyncio
    async def test_list_by_creator_any_status(self, repo: CampaignRepository) -> None:
        await repo.create(_create("Mine active"), "u1")
        await repo.create(_create("Mine draft", status=CampaignStatus.DRAFT), "u1")
        await repo.create(_create("Theirs"), "u2")

        page, _ = await repo.list_by_creator("u1")
        assert {c.title for c in page} == {"Mine active", "Mine draft"}

        page, _ = await repo.list_by_creator("u1", status=CampaignStatus.DRAFT)
        assert [c.title for c in page] == ["Mine draft"]
