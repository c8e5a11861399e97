"""Prometheus metrics for the Chroma client.

Provides metrics instrumentation for:
- Request latency and counts per endpoint
- Transport retries
- Connection pool usage
- Query result sizes
"""

import re

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REQUEST_DURATION = Histogram(
    "chroma_request_duration_seconds",
    "Chroma request duration in seconds",
    ["method", "endpoint", "status"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

REQUEST_TOTAL = Counter(
    "chroma_requests_total",
    "Total Chroma requests",
    ["method", "endpoint", "status"],
)

REQUEST_RETRIES = Counter(
    "chroma_request_retries_total",
    "Retries of transient transport failures",
    ["endpoint"],
)

CONNECTIONS_IN_USE = Gauge(
    "chroma_connections_in_use",
    "Pool slots currently held by in-flight requests",
)

QUERY_RESULTS_RETURNED = Histogram(
    "chroma_query_results_returned",
    "Matches returned per query vector",
    buckets=[0, 1, 2, 5, 10, 20, 50, 100, 250],
)

_COLLECTION_PATH = re.compile(r"^(/api/v1/collections/)[^/]+")


def normalize_endpoint(path: str) -> str:
    """Normalize a request path to reduce label cardinality.

    Collection names and ids are replaced with ``{id}``.
    """
    return _COLLECTION_PATH.sub(r"\1{id}", path)


def track_request(
    method: str,
    path: str,
    duration: float,
    status: int | str,
) -> None:
    """Track a completed request.

    Args:
        method: HTTP method.
        path: Request path (normalized here).
        duration: Request duration in seconds.
        status: HTTP status code, or "error" when no response arrived.
    """
    endpoint = normalize_endpoint(path)
    REQUEST_DURATION.labels(
        method=method, endpoint=endpoint, status=str(status)
    ).observe(duration)
    REQUEST_TOTAL.labels(method=method, endpoint=endpoint, status=str(status)).inc()


def track_retry(path: str) -> None:
    """Track one retry of a transient failure."""
    REQUEST_RETRIES.labels(endpoint=normalize_endpoint(path)).inc()


def track_query_results(counts: list[int]) -> None:
    """Track result sizes, one entry per query vector."""
    for count in counts:
        QUERY_RESULTS_RETURNED.observe(count)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()

