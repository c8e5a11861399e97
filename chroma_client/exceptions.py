"""Client exception hierarchy.

All custom exceptions inherit from ChromaClientError.
Each exception has an error code for structured error handling.
Cancellation is not wrapped: asyncio.CancelledError reaches the caller as is.
"""

from asyncio import CancelledError
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "CHR-1000"
    CONFIGURATION_ERROR = "CHR-1001"
    VALIDATION_ERROR = "CHR-1002"
    DIMENSION_MISMATCH = "CHR-1003"

    # Transport errors (2xxx)
    CONNECTION_ERROR = "CHR-2000"
    TRANSPORT_ERROR = "CHR-2001"
    RETRIES_EXHAUSTED = "CHR-2002"
    RESPONSE_PARSE_ERROR = "CHR-2003"

    # Resource errors (3xxx)
    NOT_FOUND = "CHR-3000"
    CONFLICT = "CHR-3001"


class ChromaClientError(Exception):
    """Base exception for all client errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(ChromaClientError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(ChromaClientError):
    """Input rejected before or by the server. Never retried."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ChromaConnectionError(ChromaClientError):
    """Server unreachable or heartbeat timed out while connecting."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONNECTION_ERROR, details)


class TransportError(ChromaClientError):
    """Request failed on the wire or returned an unusable response."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TRANSPORT_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class NotFoundError(ChromaClientError):
    """Requested collection or resource does not exist."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.NOT_FOUND, details)


class ConflictError(ChromaClientError):
    """Resource already exists."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFLICT, details)


__all__ = [
    "CancelledError",
    "ChromaClientError",
    "ChromaConnectionError",
    "ConfigurationError",
    "ConflictError",
    "ErrorCode",
    "NotFoundError",
    "TransportError",
    "ValidationError",
]
