"""Async client for the Chroma vector database."""

from chroma_client.client import ChromaClient, connect
from chroma_client.collections import CollectionClient
from chroma_client.connection import ConnectionManager
from chroma_client.exceptions import (
    CancelledError,
    ChromaClientError,
    ChromaConnectionError,
    ConflictError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from chroma_client.models import (
    Collection,
    DistanceMetric,
    Match,
    Query,
    QueryResult,
    Record,
)
from chroma_client.query import QueryEngine

__all__ = [
    "CancelledError",
    "ChromaClient",
    "ChromaClientError",
    "ChromaConnectionError",
    "Collection",
    "CollectionClient",
    "ConflictError",
    "ConnectionManager",
    "DistanceMetric",
    "Match",
    "NotFoundError",
    "Query",
    "QueryEngine",
    "QueryResult",
    "Record",
    "TransportError",
    "ValidationError",
    "connect",
]
