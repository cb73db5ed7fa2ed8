"""HTTP middleware for the Civilyst API."""

from civilyst.api.middleware.correlation import CorrelationMiddleware

__all__ = ["CorrelationMiddleware"]
