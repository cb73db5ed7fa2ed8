"""Persistence layer for Civilyst.

Async SQLAlchemy engine/session management, ORM tables and the campaign
repository.
"""

from civilyst.persistence.db import (
    close_db,
    get_session,
    init_db,
)
from civilyst.persistence.repositories import CampaignRepository
from civilyst.persistence.tables import Base, CampaignTable, VoteTable

__all__ = [
    "Base",
    "CampaignTable",
    "VoteTable",
    "CampaignRepository",
    "get_session",
    "init_db",
    "close_db",
]
