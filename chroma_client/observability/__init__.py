"""Observability module for metrics and monitoring."""

from chroma_client.observability.metrics import (
    CONNECTIONS_IN_USE,
    get_metrics,
    normalize_endpoint,
    track_query_results,
    track_request,
    track_retry,
)

__all__ = [
    "CONNECTIONS_IN_USE",
    "get_metrics",
    "normalize_endpoint",
    "track_query_results",
    "track_request",
    "track_retry",
]
