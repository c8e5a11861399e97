"""Domain models for collections, records and query results."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

MetadataValue = str | int | float | bool


class DistanceMetric(str, Enum):
    """Distance function a collection is indexed with."""

    L2 = "l2"
    COSINE = "cosine"
    IP = "ip"


class Collection(BaseModel):
    """Handle to a server-side collection.

    Attributes:
        id: Server-assigned collection identifier.
        name: Unique collection name.
        dimension: Length every record embedding must have.
        metric: Distance function used for similarity search.
        metadata: User metadata (reserved keys stripped).
        tenant: Owning tenant.
        database: Owning database.
    """

    id: str = Field(description="Server-assigned identifier")
    name: str = Field(description="Unique collection name")
    dimension: int | None = Field(
        default=None,
        description="Embedding dimensionality (None if unknown to the server)",
    )
    metric: DistanceMetric = Field(
        default=DistanceMetric.L2,
        description="Distance metric",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="User metadata",
    )
    tenant: str | None = Field(default=None, description="Owning tenant")
    database: str | None = Field(default=None, description="Owning database")


class Record(BaseModel):
    """A record stored in a collection.

    Attributes:
        id: Record identifier, unique within the collection.
        embedding: The embedding vector.
        metadata: Scalar metadata stored with the vector.
        document: Optional source text.
    """

    id: str = Field(min_length=1, description="Record identifier")
    embedding: list[float] = Field(description="Embedding vector")
    metadata: dict[str, MetadataValue] | None = Field(
        default=None,
        description="Scalar metadata",
    )
    document: str | None = Field(default=None, description="Source text")


class Query(BaseModel):
    """A similarity search request against one collection."""

    collection: str = Field(description="Target collection name")
    vectors: list[list[float]] = Field(description="Query vectors")
    top_k: int = Field(default=10, description="Matches per query vector")
    filter: dict[str, Any] | None = Field(
        default=None,
        description="Metadata filter",
    )
    where_document: dict[str, Any] | None = Field(
        default=None,
        description="Document text filter",
    )
    include_embeddings: bool = Field(
        default=False,
        description="Return stored embeddings with each match",
    )


class Match(BaseModel):
    """One record returned by a similarity search."""

    id: str = Field(description="Record identifier")
    distance: float = Field(description="Distance to the query vector")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Record metadata",
    )
    document: str | None = Field(default=None, description="Source text")
    embedding: list[float] | None = Field(
        default=None,
        description="Stored embedding, when requested",
    )


class QueryResult(BaseModel):
    """Matches for a single query vector, nearest first."""

    matches: list[Match] = Field(default_factory=list)

    @property
    def ids(self) -> list[str]:
        """Record identifiers in result order."""
        return [match.id for match in self.matches]

    @property
    def distances(self) -> list[float]:
        """Distances in result order."""
        return [match.distance for match in self.matches]

    @property
    def nearest(self) -> Match | None:
        """Closest match, if any."""
        return self.matches[0] if self.matches else None
