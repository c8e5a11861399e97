"""Map wire responses into typed results."""

from typing import Any

from chroma_client.codec import (
    DIMENSION_KEY,
    METRIC_KEY,
    CollectionResponse,
    GetResponse,
    QueryResponse,
    decode,
)
from chroma_client.exceptions import ErrorCode, TransportError
from chroma_client.models import Collection, DistanceMetric, Match, QueryResult, Record


def _column(values: list[Any] | None, size: int) -> list[Any]:
    """Return a response column, or a column of Nones if it was not included."""
    if values is None:
        return [None] * size
    if len(values) != size:
        raise TransportError(
            f"Response column has {len(values)} entries, expected {size}",
            code=ErrorCode.RESPONSE_PARSE_ERROR,
        )
    return values


def to_collection(raw: Any) -> Collection:
    """Convert a collection response into a Collection handle.

    Dimension and metric are read from the reserved metadata keys, falling
    back to the server-reported dimension and the L2 metric.
    """
    response = decode(CollectionResponse, raw)
    metadata = dict(response.metadata or {})

    metric = DistanceMetric(metadata.pop(METRIC_KEY, DistanceMetric.L2.value))
    dimension = metadata.pop(DIMENSION_KEY, None)
    if dimension is None:
        dimension = response.dimension

    return Collection(
        id=response.id,
        name=response.name,
        dimension=dimension,
        metric=metric,
        metadata=metadata,
        tenant=response.tenant,
        database=response.database,
    )


def to_collections(raw: Any) -> list[Collection]:
    """Convert a list-collections response."""
    if not isinstance(raw, list):
        raise TransportError(
            "Expected a list of collections",
            code=ErrorCode.RESPONSE_PARSE_ERROR,
        )
    return [to_collection(item) for item in raw]


def to_records(raw: Any) -> list[Record]:
    """Convert a column-oriented get response into records."""
    response = decode(GetResponse, raw)
    size = len(response.ids)
    embeddings = _column(response.embeddings, size)
    metadatas = _column(response.metadatas, size)
    documents = _column(response.documents, size)

    return [
        Record(
            id=record_id,
            embedding=embedding or [],
            metadata=metadata,
            document=document,
        )
        for record_id, embedding, metadata, document in zip(
            response.ids, embeddings, metadatas, documents
        )
    ]


def to_query_results(raw: Any) -> list[QueryResult]:
    """Convert a query response into one QueryResult per query vector.

    Each result is sorted by ascending distance. The sort is stable, so
    ties keep the order the server returned.
    """
    response = decode(QueryResponse, raw)
    rows = len(response.ids)
    distances = _column(response.distances, rows)
    metadatas = _column(response.metadatas, rows)
    documents = _column(response.documents, rows)
    embeddings = _column(response.embeddings, rows)

    results: list[QueryResult] = []
    for row, ids in enumerate(response.ids):
        size = len(ids)
        if distances[row] is None:
            raise TransportError(
                "Query response is missing distances",
                code=ErrorCode.RESPONSE_PARSE_ERROR,
            )
        row_distances = _column(distances[row], size)
        row_metadatas = _column(metadatas[row], size)
        row_documents = _column(documents[row], size)
        row_embeddings = _column(embeddings[row], size)

        matches = [
            Match(
                id=ids[i],
                distance=row_distances[i],
                metadata=row_metadatas[i] or {},
                document=row_documents[i],
                embedding=row_embeddings[i],
            )
            for i in range(size)
        ]
        matches.sort(key=lambda match: match.distance)
        results.append(QueryResult(matches=matches))

    return results
