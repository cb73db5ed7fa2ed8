"""Repository for campaign and vote persistence.

Repositories flush but never commit. The API layer commits and only then
invalidates cache entries, so a reader can never repopulate the cache from
uncommitted state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civilyst.core.model import (
    Campaign,
    CampaignCreate,
    CampaignDetail,
    CampaignRecord,
    CampaignStatus,
    VoteCounts,
    VoteType,
)
from civilyst.persistence.tables import CampaignTable, VoteTable

Keyset = tuple[datetime, str]


def _after(stmt: Select[Any], after: Keyset | None) -> Select[Any]:
    """Apply newest-first keyset pagination on (created_at, id)."""
    if after is not None:
        created_at, last_id = after
        stmt = stmt.where(
            or_(
                CampaignTable.created_at < created_at,
                and_(CampaignTable.created_at == created_at, CampaignTable.id < last_id),
            )
        )
    return stmt.order_by(CampaignTable.created_at.desc(), CampaignTable.id.desc())


class CampaignRepository:
    """Campaign CRUD, text search and voting."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_row(self, campaign_id: str) -> CampaignTable | None:
        return await self.session.get(CampaignTable, campaign_id)

    async def get(self, campaign_id: str) -> Campaign | None:
        row = await self.get_row(campaign_id)
        return Campaign.model_validate(row) if row is not None else None

    async def get_detail(self, campaign_id: str) -> CampaignDetail | None:
        """Campaign with its vote counts, or None if it does not exist."""
        row = await self.get_row(campaign_id)
        if row is None:
            return None
        campaign = Campaign.model_validate(row)
        votes = await self.vote_counts(campaign_id)
        return CampaignDetail(**campaign.model_dump(), votes=votes)

    async def create(self, data: CampaignCreate, creator_id: str) -> Campaign:
        row = CampaignTable(
            title=data.title,
            description=data.description,
            status=data.status.value,
            latitude=data.latitude,
            longitude=data.longitude,
            address=data.address,
            city=data.city,
            state=data.state,
            zip_code=data.zip_code,
            creator_id=creator_id,
        )
        self.session.add(row)
        await self.session.flush()
        return Campaign.model_validate(row)

    async def update(self, campaign_id: str, changes: dict[str, Any]) -> Campaign | None:
        """Apply field changes.

        Returns:
            The updated campaign, or None if not found.
        """
        row = await self.get_row(campaign_id)
        if row is None:
            return None

        for name, value in changes.items():
            if isinstance(value, CampaignStatus):
                value = value.value
            setattr(row, name, value)

        await self.session.flush()
        await self.session.refresh(row)
        return Campaign.model_validate(row)

    async def delete(self, campaign_id: str) -> bool:
        """Delete a campaign and its votes.

        Returns:
            True if deleted, False if not found.
        """
        row = await self.get_row(campaign_id)
        if row is None:
            return False

        # Explicit so SQLite without foreign key enforcement behaves the same
        await self.session.execute(delete(VoteTable).where(VoteTable.campaign_id == campaign_id))
        await self.session.delete(row)
        await self.session.flush()
        return True

    async def search(
        self,
        *,
        query: str | None = None,
        status: CampaignStatus | None = None,
        city: str | None = None,
        state: str | None = None,
        limit: int = 20,
        after: Keyset | None = None,
    ) -> tuple[list[CampaignRecord], bool]:
        """Text search over title and description, newest first.

        Only ACTIVE campaigns are searched unless another status is given.
        City and state match case-insensitively.

        Returns:
            (page, has_more)
        """
        stmt = select(CampaignTable).where(
            CampaignTable.status == (status or CampaignStatus.ACTIVE).value
        )
        if query:
            stmt = stmt.where(
                or_(
                    CampaignTable.title.icontains(query, autoescape=True),
                    CampaignTable.description.icontains(query, autoescape=True),
                )
            )
        if city:
            stmt = stmt.where(func.lower(CampaignTable.city) == city.lower())
        if state:
            stmt = stmt.where(func.lower(CampaignTable.state) == state.lower())

        stmt = _after(stmt, after).limit(limit + 1)
        rows = (await self.session.execute(stmt)).scalars().all()
        page = [CampaignRecord.model_validate(row) for row in rows[:limit]]
        return page, len(rows) > limit

    async def list_by_creator(
        self,
        creator_id: str,
        *,
        status: CampaignStatus | None = None,
        limit: int = 20,
        after: Keyset | None = None,
    ) -> tuple[list[Campaign], bool]:
        """Campaigns created by a user, newest first, in any status by default."""
        stmt = select(CampaignTable).where(CampaignTable.creator_id == creator_id)
        if status is not None:
            stmt = stmt.where(CampaignTable.status == status.value)

        stmt = _after(stmt, after).limit(limit + 1)
        rows = (await self.session.execute(stmt)).scalars().all()
        page = [Campaign.model_validate(row) for row in rows[:limit]]
        return page, len(rows) > limit

    async def vote_counts(self, campaign_id: str) -> VoteCounts:
        stmt = (
            select(VoteTable.vote_type, func.count())
            .where(VoteTable.campaign_id == campaign_id)
            .group_by(VoteTable.vote_type)
        )
        counts = {vote_type: n for vote_type, n in (await self.session.execute(stmt)).all()}
        return VoteCounts(
            support=counts.get(VoteType.SUPPORT.value, 0),
            oppose=counts.get(VoteType.OPPOSE.value, 0),
        )

    async def vote_counts_for(self, campaign_ids: list[str]) -> dict[str, VoteCounts]:
        """Vote counts for several campaigns in one query."""
        counts = {campaign_id: VoteCounts() for campaign_id in campaign_ids}
        if not campaign_ids:
            return counts
        stmt = (
            select(VoteTable.campaign_id, VoteTable.vote_type, func.count())
            .where(VoteTable.campaign_id.in_(campaign_ids))
            .group_by(VoteTable.campaign_id, VoteTable.vote_type)
        )
        for campaign_id, vote_type, n in (await self.session.execute(stmt)).all():
            if vote_type == VoteType.SUPPORT.value:
                counts[campaign_id].support = n
            elif vote_type == VoteType.OPPOSE.value:
                counts[campaign_id].oppose = n
        return counts

    async def upsert_vote(self, campaign_id: str, user_id: str, vote_type: VoteType) -> None:
        """Record a user's vote, replacing any earlier vote on the campaign."""
        stmt = select(VoteTable).where(
            VoteTable.campaign_id == campaign_id, VoteTable.user_id == user_id
        )
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        if row is None:
            self.session.add(
                VoteTable(campaign_id=campaign_id, user_id=user_id, vote_type=vote_type.value)
            )
        else:
            row.vote_type = vote_type.value
        await self.session.flush()
