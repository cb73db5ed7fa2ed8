"""Initial schema for civilyst.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates tables for:
- campaigns: civic campaigns with optional coordinates
- votes: one SUPPORT/OPPOSE vote per user per campaign
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("zip_code", sa.String(20), nullable=True),
        sa.Column("creator_id", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_campaigns_status_created", "campaigns", ["status", "created_at"])
    op.create_index("idx_campaigns_location", "campaigns", ["latitude", "longitude"])
    op.create_index("idx_campaigns_city", "campaigns", ["city"])
    op.create_index("idx_campaigns_creator", "campaigns", ["creator_id", "created_at"])

    op.create_table(
        "votes",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "campaign_id",
            sa.String(32),
            sa.ForeignKey("campaigns.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("vote_type", sa.String(10), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("campaign_id", "user_id", name="uq_votes_campaign_user"),
    )
    op.create_index("idx_votes_campaign", "votes", ["campaign_id"])


def downgrade() -> None:
    op.drop_index("idx_votes_campaign", table_name="votes")
    op.drop_table("votes")
    op.drop_index("idx_campaigns_creator", table_name="campaigns")
    op.drop_index("idx_campaigns_city", table_name="campaigns")
    op.drop_index("idx_campaigns_location", table_name="campaigns")
    op.drop_index("idx_campaigns_status_created", table_name="campaigns")
    op.drop_table("campaigns")
