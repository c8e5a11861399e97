"""Client facade tying the connection, collections and queries together."""

from collections.abc import Sequence
from typing import Any

import httpx

from chroma_client.collections import CollectionClient
from chroma_client.config import ChromaSettings
from chroma_client.connection import ConnectionManager
from chroma_client.models import Collection, DistanceMetric, QueryResult, Record
from chroma_client.query import QueryEngine, RecordInput


class ChromaClient:
    """Async client for a Chroma server.

    Usage:
        async with await connect("localhost:8000") as client:
            docs = await client.create_collection("docs", dimension=384)
            await client.upsert(docs, records)
            results = await client.query(docs, [vector], top_k=5)
    """

    def __init__(self, connection: ConnectionManager) -> None:
        """Initialize the client.

        Args:
            connection: An open connection manager.
        """
        self._connection = connection
        self.collections = CollectionClient(connection)
        self.queries = QueryEngine(connection, self.collections)

    @property
    def connection(self) -> ConnectionManager:
        """Underlying connection manager."""
        return self._connection

    async def close(self) -> None:
        """Release pooled connections."""
        await self._connection.close()

    async def __aenter__(self) -> "ChromaClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def heartbeat(self) -> int:
        """Server time in nanoseconds since epoch."""
        return await self._connection.heartbeat()

    async def version(self) -> str:
        """Server version string."""
        return await self._connection.version()

    async def create_collection(
        self,
        name: str,
        dimension: int,
        metric: DistanceMetric | str = DistanceMetric.L2,
        metadata: dict[str, Any] | None = None,
    ) -> Collection:
        """See CollectionClient.create_collection."""
        return await self.collections.create_collection(name, dimension, metric, metadata)

    async def get_or_create_collection(
        self,
        name: str,
        dimension: int,
        metric: DistanceMetric | str = DistanceMetric.L2,
        metadata: dict[str, Any] | None = None,
    ) -> Collection:
        """See CollectionClient.get_or_create_collection."""
        return await self.collections.get_or_create_collection(
            name, dimension, metric, metadata
        )

    async def get_collection(self, name: str) -> Collection:
        """See CollectionClient.get_collection."""
        return await self.collections.get_collection(name)

    async def list_collections(
        self,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Collection]:
        """See CollectionClient.list_collections."""
        return await self.collections.list_collections(limit, offset)

    async def count_collections(self) -> int:
        """See CollectionClient.count_collections."""
        return await self.collections.count_collections()

    async def delete_collection(self, name: str, missing_ok: bool | None = None) -> None:
        """See CollectionClient.delete_collection."""
        await self.collections.delete_collection(name, missing_ok)

    async def upsert(
        self,
        collection: Collection | str,
        records: Sequence[RecordInput],
    ) -> int:
        """See QueryEngine.upsert."""
        return await self.queries.upsert(collection, records)

    async def add(
        self,
        collection: Collection | str,
        records: Sequence[RecordInput],
    ) -> int:
        """See QueryEngine.add."""
        return await self.queries.add(collection, records)

    async def query(
        self,
        collection: Collection | str,
        query_vectors: Sequence[Sequence[float]],
        top_k: int = 10,
        filter: dict[str, Any] | None = None,
        where_document: dict[str, Any] | None = None,
        include_embeddings: bool = False,
    ) -> list[QueryResult]:
        """See QueryEngine.query."""
        return await self.queries.query(
            collection,
            query_vectors,
            top_k=top_k,
            filter=filter,
            where_document=where_document,
            include_embeddings=include_embeddings,
        )

    async def get(
        self,
        collection: Collection | str,
        ids: Sequence[str] | None = None,
        filter: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Record]:
        """See QueryEngine.get."""
        return await self.queries.get(collection, ids, filter, limit, offset)

    async def delete(
        self,
        collection: Collection | str,
        ids: Sequence[str] | None = None,
        filter: dict[str, Any] | None = None,
    ) -> int:
        """See QueryEngine.delete."""
        return await self.queries.delete(collection, ids, filter)

    async def count(self, collection: Collection | str) -> int:
        """See QueryEngine.count."""
        return await self.queries.count(collection)


async def connect(
    endpoint: str | None = None,
    settings: ChromaSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> ChromaClient:
    """Connect to a Chroma server.

    Args:
        endpoint: Server URL or host:port (default from settings).
        settings: Chroma configuration.
        client: Existing HTTP client (for testing).

    Returns:
        A connected ChromaClient.

    Raises:
        ChromaConnectionError: If the server is unreachable or times out.
    """
    connection = await ConnectionManager.connect(
        endpoint=endpoint, settings=settings, client=client
    )
    return ChromaClient(connection)
