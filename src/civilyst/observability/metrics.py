"""Prometheus metrics for Civilyst.

HTTP traffic is labelled by route template (``/campaigns/{campaign_id}``)
rather than raw path, so campaign ids and city names never become label
values. Cache metrics are labelled by query class: ``campaign``, ``search``,
``user_campaigns``, ``geo_radius``, ``geo_nearby``, ``geo_bounds`` and
``geo_city``.

The ``record_*`` helpers are safe to call whether or not metrics are
enabled.
"""

from __future__ import annotations

import logging
import time

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import BaseRoute

from civilyst.config import settings

logger = logging.getLogger(__name__)

_UNMATCHED_ROUTE = "<unmatched>"
_UNLABELLED_PATHS = frozenset({"/health/live", "/health/ready", "/metrics"})


class MetricsRegistry:
    """Holds the process-wide collectors.

    Collectors register with the default Prometheus registry once; they stay
    ``None`` when metrics are disabled.
    """

    def __init__(self) -> None:
        self.enabled = False
        self.http_requests_total: Counter | None = None
        self.http_request_duration_seconds: Histogram | None = None
        self.cache_hits_total: Counter | None = None
        self.cache_misses_total: Counter | None = None
        self.cache_errors_total: Counter | None = None
        self.cache_operation_duration_seconds: Histogram | None = None
        self.cache_invalidated_keys_total: Counter | None = None
        self._built = False

    def build(self) -> None:
        if self._built:
            return
        self._built = True
        if not settings.enable_metrics:
            logger.info("Prometheus metrics disabled")
            return

        self.http_requests_total = Counter(
            "civilyst_http_requests_total",
            "HTTP requests by route and status",
            ["method", "route", "status"],
        )
        self.http_request_duration_seconds = Histogram(
            "civilyst_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "route"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
        )
        self.cache_hits_total = Counter(
            "civilyst_cache_hits_total",
            "Reads answered from the cache",
            ["query_class"],
        )
        self.cache_misses_total = Counter(
            "civilyst_cache_misses_total",
            "Reads that ran the producer",
            ["query_class"],
        )
        self.cache_errors_total = Counter(
            "civilyst_cache_errors_total",
            "Cache store operations that failed and were skipped",
            ["operation"],
        )
        self.cache_operation_duration_seconds = Histogram(
            "civilyst_cache_operation_duration_seconds",
            "Read-through latency in seconds, including the producer on a miss",
            ["outcome", "query_class"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0),
        )
        self.cache_invalidated_keys_total = Counter(
            "civilyst_cache_invalidated_keys_total",
            "Keys removed by write-triggered invalidation",
            ["trigger"],
        )
        self.enabled = True
        logger.info("Prometheus metrics registered")

    def exposition(self) -> bytes:
        if not self.enabled:
            return b"# metrics disabled\n"
        return generate_latest(REGISTRY)


metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """The process-wide registry, built on first use."""
    metrics_registry.build()
    return metrics_registry


def route_template(request: Request) -> str:
    """Path template of the route that handled the request."""
    route = request.scope.get("route")
    if isinstance(route, BaseRoute):
        return getattr(route, "path", _UNMATCHED_ROUTE)
    return _UNMATCHED_ROUTE


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count and time requests per route template."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _UNLABELLED_PATHS:
            return await call_next(request)

        metrics = get_metrics()
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            # The router stores the matched route on the shared scope
            route = route_template(request)
            if metrics.http_requests_total is not None:
                metrics.http_requests_total.labels(request.method, route, str(status)).inc()
            if metrics.http_request_duration_seconds is not None:
                metrics.http_request_duration_seconds.labels(request.method, route).observe(
                    time.perf_counter() - start
                )


def record_cache_hit(query_class: str) -> None:
    counter = get_metrics().cache_hits_total
    if counter is not None:
        counter.labels(query_class).inc()


def record_cache_miss(query_class: str) -> None:
    counter = get_metrics().cache_misses_total
    if counter is not None:
        counter.labels(query_class).inc()


def record_cache_error(operation: str) -> None:
    """Count a failed store operation: get, set, delete, sweep, encode or decode."""
    counter = get_metrics().cache_errors_total
    if counter is not None:
        counter.labels(operation).inc()


def record_cache_operation(outcome: str, duration: float, query_class: str) -> None:
    """Observe one read-through call.

    Args:
        outcome: hit, miss or error
        duration: Seconds from the cache lookup to the returned result
        query_class: Query class label, see module docstring
    """
    histogram = get_metrics().cache_operation_duration_seconds
    if histogram is not None:
        histogram.labels(outcome, query_class).observe(duration)


def record_invalidation(trigger: str, deleted: int) -> None:
    counter = get_metrics().cache_invalidated_keys_total
    if counter is not None and deleted:
        counter.labels(trigger).inc(deleted)
