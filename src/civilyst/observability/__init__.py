"""Observability for Civilyst.

- Prometheus metrics for HTTP traffic and cache hit/miss/error counts
- Structured logging with request correlation ids
"""

from civilyst.observability.logging import (
    configure_logging,
    correlation_id_var,
    current_context,
    log_context,
    request_id_var,
    user_id_var,
)
from civilyst.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "current_context",
    "log_context",
    "request_id_var",
    "correlation_id_var",
    "user_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
    "MetricsMiddleware",
]
