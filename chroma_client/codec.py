"""Wire codec for the Chroma HTTP+JSON protocol.

Request bodies are pydantic models dumped with ``encode``; response bodies
are validated into models with ``decode``. Error bodies are turned into the
client exception taxonomy by ``error_from_response``.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from chroma_client.exceptions import (
    ChromaClientError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    TransportError,
    ValidationError,
)

API_PREFIX = "/api/v1"

# Collection metadata keys owned by the client
METRIC_KEY = "hnsw:space"
DIMENSION_KEY = "embedding:dimension"
RESERVED_METADATA_KEYS = frozenset({METRIC_KEY, DIMENSION_KEY})

CONFLICT_ERRORS = frozenset({"UniqueConstraintError", "DuplicateIDError"})
NOT_FOUND_ERRORS = frozenset({"NotFoundError", "InvalidCollectionException"})
INVALID_ERRORS = frozenset(
    {"InvalidArgumentError", "InvalidDimensionException", "ValueError"}
)

ModelT = TypeVar("ModelT", bound=BaseModel)


class _Response(BaseModel):
    model_config = ConfigDict(extra="ignore")


class HeartbeatResponse(_Response):
    """Body of ``GET /heartbeat``."""

    nanosecond_heartbeat: int = Field(alias="nanosecond heartbeat")


class CreateCollectionRequest(BaseModel):
    """Body of ``POST /collections``."""

    name: str
    metadata: dict[str, Any] | None = None
    get_or_create: bool = False


class CollectionResponse(_Response):
    """A collection as the server describes it."""

    id: str
    name: str
    metadata: dict[str, Any] | None = None
    dimension: int | None = None
    tenant: str | None = None
    database: str | None = None


class EmbeddingsRequest(BaseModel):
    """Body of ``POST /collections/{id}/add`` and ``/upsert``."""

    ids: list[str]
    embeddings: list[list[float]]
    metadatas: list[dict[str, Any] | None] | None = None
    documents: list[str | None] | None = None


class GetRequest(BaseModel):
    """Body of ``POST /collections/{id}/get``."""

    ids: list[str] | None = None
    where: dict[str, Any] | None = None
    where_document: dict[str, Any] | None = None
    limit: int | None = None
    offset: int | None = None
    include: list[str] = Field(
        default_factory=lambda: ["metadatas", "documents", "embeddings"]
    )


class GetResponse(_Response):
    """Column-oriented records returned by ``/get``."""

    ids: list[str]
    embeddings: list[list[float]] | None = None
    metadatas: list[dict[str, Any] | None] | None = None
    documents: list[str | None] | None = None


class DeleteRequest(BaseModel):
    """Body of ``POST /collections/{id}/delete``."""

    ids: list[str] | None = None
    where: dict[str, Any] | None = None
    where_document: dict[str, Any] | None = None


class QueryRequest(BaseModel):
    """Body of ``POST /collections/{id}/query``."""

    query_embeddings: list[list[float]]
    n_results: int
    where: dict[str, Any] | None = None
    where_document: dict[str, Any] | None = None
    include: list[str] = Field(
        default_factory=lambda: ["metadatas", "documents", "distances"]
    )


class QueryResponse(_Response):
    """Column-oriented matches, one row per query vector."""

    ids: list[list[str]]
    distances: list[list[float]] | None = None
    metadatas: list[list[dict[str, Any] | None]] | None = None
    documents: list[list[str | None]] | None = None
    embeddings: list[list[list[float]]] | None = None


def encode(request: BaseModel) -> dict[str, Any]:
    """Serialize a request model to a JSON-ready dict.

    Unset optional fields are omitted so the server applies its defaults.
    """
    return request.model_dump(exclude_none=True, by_alias=True)


def decode(model: type[ModelT], data: Any) -> ModelT:
    """Validate a response body into ``model``.

    Raises:
        TransportError: If the body does not match the expected shape.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise TransportError(
            f"Invalid {model.__name__} from server: {e.error_count()} error(s)",
            code=ErrorCode.RESPONSE_PARSE_ERROR,
            details={"errors": e.errors(include_url=False)},
        ) from e


def _error_name_and_message(body: Any) -> tuple[str, str]:
    if isinstance(body, dict):
        name = body.get("error")
        message = body.get("message") or body.get("detail") or name or ""
        return str(name or ""), str(message)
    if isinstance(body, str):
        return "", body
    return "", ""


def error_from_response(status_code: int, body: Any) -> ChromaClientError:
    """Map a non-success response to a client exception.

    Args:
        status_code: HTTP status of the response.
        body: Decoded JSON body, raw text, or None.

    Returns:
        The exception to raise.
    """
    name, message = _error_name_and_message(body)
    lowered = message.lower()
    details = {"status_code": status_code, "error": name or None}
    text = message or f"Chroma returned {status_code}"

    if status_code == 409 or name in CONFLICT_ERRORS:
        return ConflictError(text, details=details)
    if status_code == 404 or name in NOT_FOUND_ERRORS:
        return NotFoundError(text, details=details)
    if status_code in (400, 422):
        return ValidationError(text, details=details)

    # Older servers report lifecycle errors as a 500 with only a message.
    if "already exists" in lowered:
        return ConflictError(text, details=details)
    if "does not exist" in lowered or "not found" in lowered:
        return NotFoundError(text, details=details)
    if name in INVALID_ERRORS:
        return ValidationError(text, details=details)
    return TransportError(text, details=details)
