"""Record writes and similarity search."""

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from chroma_client.codec import (
    DeleteRequest,
    EmbeddingsRequest,
    GetRequest,
    QueryRequest,
    encode,
)
from chroma_client.collections import CollectionClient
from chroma_client.connection import ConnectionManager
from chroma_client.exceptions import ErrorCode, TransportError, ValidationError
from chroma_client.filters import build_where, build_where_document
from chroma_client.logging_config import get_logger
from chroma_client.mapper import to_query_results, to_records
from chroma_client.models import Collection, Query, QueryResult, Record
from chroma_client.observability.metrics import track_query_results

logger = get_logger(__name__)

RecordInput = Record | Mapping[str, Any]


def _batches(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class QueryEngine:
    """Validated writes and batched similarity search over collections.

    Operations accept a Collection handle or a collection name; names are
    resolved with one extra request.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        collections: CollectionClient | None = None,
    ) -> None:
        self._connection = connection
        self._collections = collections or CollectionClient(connection)

    async def _resolve(self, collection: Collection | str) -> Collection:
        if isinstance(collection, Collection):
            return collection
        return await self._collections.get_collection(collection)

    @property
    def _batch_size(self) -> int:
        return self._connection.settings.max_batch_size

    def _validate_records(
        self,
        records: Sequence[RecordInput],
        dimension: int | None,
    ) -> list[Record]:
        """Check every record before anything is sent.

        Raises:
            ValidationError: Listing every offending index.
        """
        parsed: list[Record] = []
        problems: dict[int, str] = {}
        seen: set[str] = set()
        only_dimension = True

        for index, item in enumerate(records):
            try:
                record = item if isinstance(item, Record) else Record.model_validate(item)
            except PydanticValidationError as e:
                problems[index] = f"invalid record: {e.errors()[0]['msg']}"
                only_dimension = False
                continue

            if dimension is None:
                dimension = len(record.embedding)

            if len(record.embedding) != dimension:
                problems[index] = (
                    f"expected dimension {dimension}, got {len(record.embedding)}"
                )
            elif record.id in seen:
                problems[index] = f"duplicate id {record.id!r}"
                only_dimension = False
            seen.add(record.id)
            parsed.append(record)

        if problems:
            indices = sorted(problems)
            raise ValidationError(
                f"{len(indices)} record(s) failed validation at indices {indices}",
                code=(
                    ErrorCode.DIMENSION_MISMATCH
                    if only_dimension
                    else ErrorCode.VALIDATION_ERROR
                ),
                details={
                    "indices": indices,
                    "reasons": {str(i): problems[i] for i in indices},
                },
            )
        return parsed

    async def _write(
        self,
        operation: str,
        collection: Collection | str,
        records: Sequence[RecordInput],
    ) -> int:
        if not records:
            return 0

        target = await self._resolve(collection)
        parsed = self._validate_records(records, target.dimension)

        batches = _batches(parsed, self._batch_size)
        for batch in batches:
            metadatas = [record.metadata for record in batch]
            documents = [record.document for record in batch]
            request = EmbeddingsRequest(
                ids=[record.id for record in batch],
                embeddings=[record.embedding for record in batch],
                metadatas=metadatas if any(m is not None for m in metadatas) else None,
                documents=documents if any(d is not None for d in documents) else None,
            )
            await self._connection.send(
                "POST",
                f"/collections/{target.id}/{operation}",
                json=encode(request),
            )

        logger.debug(
            f"{operation.capitalize()}ed {len(parsed)} records in {len(batches)} batch(es)",
            extra={"collection": target.name},
        )
        return len(parsed)

    async def upsert(
        self,
        collection: Collection | str,
        records: Sequence[RecordInput],
    ) -> int:
        """Insert or update records.

        All records are validated first; if any fails, nothing is sent.

        Args:
            collection: Collection handle or name.
            records: Records to upsert.

        Returns:
            Number of records upserted.

        Raises:
            ValidationError: If any record is invalid, listing the indices.
        """
        return await self._write("upsert", collection, records)

    async def add(
        self,
        collection: Collection | str,
        records: Sequence[RecordInput],
    ) -> int:
        """Insert new records. The server rejects ids that already exist."""
        return await self._write("add", collection, records)

    async def query(
        self,
        collection: Collection | str,
        query_vectors: Sequence[Sequence[float]],
        top_k: int = 10,
        filter: dict[str, Any] | None = None,
        where_document: dict[str, Any] | None = None,
        include_embeddings: bool = False,
    ) -> list[QueryResult]:
        """Find the nearest records for each query vector.

        Args:
            collection: Collection handle or name.
            query_vectors: One or more query vectors.
            top_k: Matches to return per vector.
            filter: Optional metadata filter.
            where_document: Optional document text filter.
            include_embeddings: Return stored embeddings with matches.

        Returns:
            One QueryResult per query vector, in input order, each sorted
            by ascending distance.

        Raises:
            ValidationError: On dimension mismatch, empty input or bad top_k.
        """
        name = collection.name if isinstance(collection, Collection) else collection
        query = Query(
            collection=name,
            vectors=[list(vector) for vector in query_vectors],
            top_k=top_k,
            filter=filter,
            where_document=where_document,
            include_embeddings=include_embeddings,
        )
        target = collection if isinstance(collection, Collection) else None
        return await self.run(query, target)

    async def run(
        self,
        query: Query,
        collection: Collection | None = None,
    ) -> list[QueryResult]:
        """Execute a prepared Query."""
        if not query.vectors:
            raise ValidationError("At least one query vector is required")
        if query.top_k < 1:
            raise ValidationError(
                f"top_k must be at least 1, got {query.top_k}",
                details={"top_k": query.top_k},
            )
        where = build_where(query.filter)
        where_document = build_where_document(query.where_document)

        target = collection or await self._resolve(query.collection)
        dimension = target.dimension or len(query.vectors[0])
        mismatched = [
            index
            for index, vector in enumerate(query.vectors)
            if len(vector) != dimension
        ]
        if mismatched:
            raise ValidationError(
                f"Query vectors at indices {mismatched} do not have dimension {dimension}",
                code=ErrorCode.DIMENSION_MISMATCH,
                details={"indices": mismatched, "dimension": dimension},
            )

        include = ["metadatas", "documents", "distances"]
        if query.include_embeddings:
            include.append("embeddings")

        async def _query_batch(vectors: Sequence[list[float]]) -> list[QueryResult]:
            request = QueryRequest(
                query_embeddings=list(vectors),
                n_results=query.top_k,
                where=where,
                where_document=where_document,
                include=include,
            )
            raw = await self._connection.send(
                "POST",
                f"/collections/{target.id}/query",
                json=encode(request),
            )
            results = to_query_results(raw)
            if len(results) != len(vectors):
                raise TransportError(
                    f"Query returned {len(results)} result rows for "
                    f"{len(vectors)} vectors",
                    code=ErrorCode.RESPONSE_PARSE_ERROR,
                )
            return results

        # First failing batch cancels the others.
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(_query_batch(batch))
                    for batch in _batches(query.vectors, self._batch_size)
                ]
        except BaseExceptionGroup as e:
            raise e.exceptions[0]

        results = [result for task in tasks for result in task.result()]
        track_query_results([len(result.matches) for result in results])
        return results

    async def get(
        self,
        collection: Collection | str,
        ids: Sequence[str] | None = None,
        filter: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Record]:
        """Fetch records by id and/or metadata filter."""
        target = await self._resolve(collection)
        request = GetRequest(
            ids=list(ids) if ids is not None else None,
            where=build_where(filter),
            limit=limit,
            offset=offset,
        )
        raw = await self._connection.send(
            "POST",
            f"/collections/{target.id}/get",
            json=encode(request),
        )
        return to_records(raw)

    async def delete(
        self,
        collection: Collection | str,
        ids: Sequence[str] | None = None,
        filter: dict[str, Any] | None = None,
    ) -> int:
        """Delete records by id and/or metadata filter.

        Returns:
            Number of ids requested for deletion (0 for filter-only deletes).

        Raises:
            ValidationError: If neither ids nor a filter is given.
        """
        if ids is not None and not ids:
            return 0
        where = build_where(filter)
        if ids is None and where is None:
            raise ValidationError("Delete needs ids or a filter")

        target = await self._resolve(collection)
        request = DeleteRequest(
            ids=list(ids) if ids is not None else None,
            where=where,
        )
        await self._connection.send(
            "POST",
            f"/collections/{target.id}/delete",
            json=encode(request),
        )
        logger.debug(
            f"Deleted records from {target.name}",
            extra={"collection": target.name, "ids": len(ids or [])},
        )
        return len(ids or [])

    async def count(self, collection: Collection | str) -> int:
        """Number of records in a collection."""
        target = await self._resolve(collection)
        raw = await self._connection.send("GET", f"/collections/{target.id}/count")
        if not isinstance(raw, int):
            raise TransportError(
                "Expected an integer record count",
                code=ErrorCode.RESPONSE_PARSE_ERROR,
            )
        return raw
