"""SQLAlchemy ORM models for campaign persistence.

Coordinates are stored as plain float columns so the same schema runs on
PostgreSQL and SQLite. Geographic filtering starts from a bounding-box range
scan on (latitude, longitude) and finishes with great-circle distance in
civilyst.geo.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CampaignTable(Base):
    """Civic campaign with an optional location."""

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    creator_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Timestamps are set client-side so keyset cursors see microsecond values
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        Index("idx_campaigns_status_created", status, created_at),
        Index("idx_campaigns_location", latitude, longitude),
        Index("idx_campaigns_city", city),
        Index("idx_campaigns_creator", creator_id, created_at),
    )


class VoteTable(Base):
    """One vote per user per campaign; re-voting replaces the vote type."""

    __tablename__ = "votes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    campaign_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    vote_type: Mapped[str] = mapped_column(String(10), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("campaign_id", "user_id", name="uq_votes_campaign_user"),
        Index("idx_votes_campaign", campaign_id),
    )
