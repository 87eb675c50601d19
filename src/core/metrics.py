"""
Prometheus metrics for the topology services.

Focused on essential metrics:
- HTTP request counts and latency per route
- Token acquisitions by audience (cache hit vs. identity provider fetch)
- Dependency failures by external system

Both services expose the registry at ``GET /metrics``.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry(auto_describe=True)

http_requests_counter = Counter(
    "topology_http_requests_total",
    "Total HTTP requests handled",
    labelnames=["service", "route", "status"],
    registry=REGISTRY,
)

http_request_duration = Histogram(
    "topology_http_request_duration_seconds",
    "HTTP request handling time",
    labelnames=["service", "route"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

token_requests_counter = Counter(
    "topology_token_requests_total",
    "Access token requests by audience and source (cache or fetch)",
    labelnames=["audience", "source"],
    registry=REGISTRY,
)

dependency_errors_counter = Counter(
    "topology_dependency_errors_total",
    "Failed calls to external services",
    labelnames=["dependency"],
    registry=REGISTRY,
)


def render_metrics() -> tuple[bytes, str]:
    """Serialize the registry in the Prometheus text exposition format."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "REGISTRY",
    "http_requests_counter",
    "http_request_duration",
    "token_requests_counter",
    "dependency_errors_counter",
    "render_metrics",
]
