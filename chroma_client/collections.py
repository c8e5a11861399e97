"""Collection lifecycle operations."""

from typing import Any

from chroma_client.codec import (
    DIMENSION_KEY,
    METRIC_KEY,
    RESERVED_METADATA_KEYS,
    CreateCollectionRequest,
    encode,
)
from chroma_client.connection import ConnectionManager
from chroma_client.exceptions import (
    ErrorCode,
    NotFoundError,
    TransportError,
    ValidationError,
)
from chroma_client.logging_config import get_logger
from chroma_client.mapper import to_collection, to_collections
from chroma_client.models import Collection, DistanceMetric

logger = get_logger(__name__)


def _collection_metadata(
    dimension: int,
    metric: DistanceMetric,
    metadata: dict[str, Any] | None,
) -> dict[str, Any]:
    reserved = sorted(RESERVED_METADATA_KEYS.intersection(metadata or {}))
    if reserved:
        raise ValidationError(
            f"Metadata uses reserved keys: {', '.join(reserved)}",
            details={"keys": reserved},
        )
    return {**(metadata or {}), METRIC_KEY: metric.value, DIMENSION_KEY: dimension}


def _validate_definition(
    name: str,
    dimension: int,
    metric: DistanceMetric | str,
) -> DistanceMetric:
    if not name:
        raise ValidationError("Collection name must not be empty")
    if dimension < 1:
        raise ValidationError(
            f"Dimension must be positive, got {dimension}",
            details={"dimension": dimension},
        )
    try:
        return DistanceMetric(metric)
    except ValueError as e:
        raise ValidationError(
            f"Unknown distance metric: {metric}",
            details={"metric": str(metric)},
        ) from e


class CollectionClient:
    """CRUD over named collections."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    async def create_collection(
        self,
        name: str,
        dimension: int,
        metric: DistanceMetric | str = DistanceMetric.L2,
        metadata: dict[str, Any] | None = None,
    ) -> Collection:
        """Create a new collection.

        Args:
            name: Unique collection name.
            dimension: Length of every embedding in the collection.
            metric: Distance metric for similarity search.
            metadata: Optional user metadata.

        Returns:
            Handle to the created collection.

        Raises:
            ConflictError: If a collection with this name exists.
            ValidationError: If the definition is invalid.
        """
        metric = _validate_definition(name, dimension, metric)
        request = CreateCollectionRequest(
            name=name,
            metadata=_collection_metadata(dimension, metric, metadata),
        )

        raw = await self._connection.send(
            "POST",
            "/collections",
            json=encode(request),
            params=self._connection.scope,
        )
        collection = to_collection(raw)
        logger.info(
            f"Created collection: {name}",
            extra={"dimension": dimension, "metric": metric.value},
        )
        return collection

    async def get_or_create_collection(
        self,
        name: str,
        dimension: int,
        metric: DistanceMetric | str = DistanceMetric.L2,
        metadata: dict[str, Any] | None = None,
    ) -> Collection:
        """Return the named collection, creating it if missing.

        Raises:
            ValidationError: If the existing collection has another dimension.
        """
        metric = _validate_definition(name, dimension, metric)
        request = CreateCollectionRequest(
            name=name,
            metadata=_collection_metadata(dimension, metric, metadata),
            get_or_create=True,
        )

        raw = await self._connection.send(
            "POST",
            "/collections",
            json=encode(request),
            params=self._connection.scope,
        )
        collection = to_collection(raw)
        if collection.dimension is not None and collection.dimension != dimension:
            raise ValidationError(
                f"Collection {name} has dimension {collection.dimension}, "
                f"requested {dimension}",
                code=ErrorCode.DIMENSION_MISMATCH,
                details={
                    "collection": name,
                    "expected": collection.dimension,
                    "actual": dimension,
                },
            )
        return collection

    async def get_collection(self, name: str) -> Collection:
        """Get a collection by name.

        Raises:
            NotFoundError: If the collection does not exist.
        """
        raw = await self._connection.send(
            "GET",
            f"/collections/{name}",
            params=self._connection.scope,
        )
        return to_collection(raw)

    async def list_collections(
        self,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Collection]:
        """List collections, optionally paginated."""
        params: dict[str, Any] = dict(self._connection.scope)
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset

        raw = await self._connection.send("GET", "/collections", params=params)
        return to_collections(raw)

    async def count_collections(self) -> int:
        """Count collections in the current tenant and database."""
        raw = await self._connection.send(
            "GET",
            "/count_collections",
            params=self._connection.scope,
        )
        if not isinstance(raw, int):
            raise TransportError(
                "Expected an integer collection count",
                code=ErrorCode.RESPONSE_PARSE_ERROR,
            )
        return raw

    async def delete_collection(
        self,
        name: str,
        missing_ok: bool | None = None,
    ) -> None:
        """Delete a collection.

        Args:
            name: Collection name.
            missing_ok: Succeed silently if the collection is absent.
                Defaults to the ``idempotent_delete`` setting.

        Raises:
            NotFoundError: If absent and ``missing_ok`` is false.
        """
        if missing_ok is None:
            missing_ok = self._connection.settings.idempotent_delete

        try:
            await self._connection.send(
                "DELETE",
                f"/collections/{name}",
                params=self._connection.scope,
            )
        except NotFoundError:
            if not missing_ok:
                raise
            logger.debug(f"Collection already absent: {name}")
            return

        logger.info(f"Deleted collection: {name}")
