"""API routers for Civilyst."""

from civilyst.api.routers import cache, campaigns, health, metrics

__all__ = [
    "cache",
    "campaigns",
    "health",
    "metrics",
]
