"""Pooled HTTP connection to a Chroma server."""

import asyncio
import time
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from chroma_client.codec import API_PREFIX, HeartbeatResponse, decode, error_from_response
from chroma_client.config import ChromaSettings, get_settings
from chroma_client.exceptions import (
    ChromaClientError,
    ChromaConnectionError,
    ConfigurationError,
    ErrorCode,
    TransportError,
)
from chroma_client.logging_config import get_logger
from chroma_client.observability.metrics import (
    CONNECTIONS_IN_USE,
    track_request,
    track_retry,
)

logger = get_logger(__name__)

TRANSIENT_STATUS_CODES = frozenset({502, 503, 504})

TRANSIENT_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


class _TransientFailure(Exception):
    """A failure worth retrying; wraps the httpx error or bad status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _resolve_base_url(endpoint: str | None, settings: ChromaSettings) -> str:
    if endpoint is None:
        return settings.base_url

    if "://" not in endpoint:
        scheme = "https" if settings.ssl else "http"
        endpoint = f"{scheme}://{endpoint}"

    try:
        url = httpx.URL(endpoint)
    except httpx.InvalidURL as e:
        raise ConfigurationError(
            f"Invalid endpoint: {endpoint}",
            details={"endpoint": endpoint},
        ) from e

    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(
            f"Invalid endpoint: {endpoint}",
            details={"endpoint": endpoint},
        )
    return str(url).rstrip("/")


class ConnectionManager:
    """Owns the HTTP connection pool and sends requests with retries.

    Concurrency is bounded by ``max_connections``: at most that many
    requests are in flight at once, matching the httpx pool limit.
    Transient failures (network errors, timeouts, 502/503/504) are retried
    with exponential backoff; all other errors surface immediately.
    """

    def __init__(
        self,
        settings: ChromaSettings | None = None,
        endpoint: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the connection manager.

        Args:
            settings: Chroma configuration.
            endpoint: Server URL or host:port overriding the settings.
            client: Existing HTTP client (for testing).
        """
        self._settings = settings or get_settings().chroma
        self._base_url = _resolve_base_url(endpoint, self._settings)
        self._client = client
        self._owns_client = client is None
        self._semaphore = asyncio.Semaphore(self._settings.max_connections)

    @classmethod
    async def connect(
        cls,
        endpoint: str | None = None,
        settings: ChromaSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "ConnectionManager":
        """Open a connection and verify the server answers a heartbeat.

        Args:
            endpoint: Server URL or host:port (default from settings).
            settings: Chroma configuration.
            client: Existing HTTP client (for testing).

        Returns:
            A ready connection manager.

        Raises:
            ChromaConnectionError: If the server is unreachable or times out.
        """
        manager = cls(settings=settings, endpoint=endpoint, client=client)
        try:
            await manager.heartbeat()
        except ChromaClientError as e:
            await manager.close()
            raise ChromaConnectionError(
                f"Could not reach Chroma at {manager.base_url}: {e.message}",
                details={"url": manager.base_url, **e.details},
            ) from e
        except BaseException:
            await manager.close()
            raise

        logger.info(f"Connected to Chroma at {manager.base_url}")
        return manager

    @property
    def base_url(self) -> str:
        """Server root URL."""
        return self._base_url

    @property
    def settings(self) -> ChromaSettings:
        """Settings this connection was built with."""
        return self._settings

    @property
    def scope(self) -> dict[str, str]:
        """Tenant and database query parameters."""
        return {
            "tenant": self._settings.tenant,
            "database": self._settings.database,
        }

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the pooled HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self._settings.auth_token:
                token = self._settings.auth_token.get_secret_value()
                headers["Authorization"] = f"Bearer {token}"

            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=httpx.Timeout(
                    self._settings.timeout,
                    connect=self._settings.connect_timeout,
                ),
                limits=httpx.Limits(
                    max_connections=self._settings.max_connections,
                    max_keepalive_connections=self._settings.max_connections,
                ),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ConnectionManager":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def heartbeat(self) -> int:
        """Get the server time in nanoseconds since epoch."""
        data = await self.send("GET", "/heartbeat")
        return decode(HeartbeatResponse, data).nanosecond_heartbeat

    async def version(self) -> str:
        """Get the server version string."""
        data = await self.send("GET", "/version")
        return str(data)

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request, retrying transient failures.

        Args:
            method: HTTP method.
            path: Path below the API prefix, e.g. ``/collections``.
            json: JSON request body.
            params: Query parameters.

        Returns:
            Decoded JSON body, or None if the body is empty.

        Raises:
            TransportError: If retries are exhausted or the request fails
                in a non-retryable way.
            ConflictError, NotFoundError, ValidationError: As decoded from
                the server's error response.
        """
        full_path = f"{API_PREFIX}{path}"

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_retries + 1),
            wait=wait_exponential(
                multiplier=self._settings.backoff_base,
                max=self._settings.backoff_max,
            ),
            retry=retry_if_exception_type(_TransientFailure),
            before_sleep=lambda state: self._before_retry(method, full_path, state),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, full_path, json, params)
        except _TransientFailure as e:
            attempts = self._settings.max_retries + 1
            logger.error(
                f"{method} {full_path} failed after {attempts} attempt(s): {e}",
                extra={"url": self._base_url},
            )
            raise TransportError(
                f"Request failed after {attempts} attempt(s): {e}",
                code=ErrorCode.RETRIES_EXHAUSTED,
                details={
                    "method": method,
                    "path": full_path,
                    "attempts": attempts,
                    "status_code": e.status_code,
                },
            ) from e

    def _before_retry(self, method: str, path: str, state: RetryCallState) -> None:
        track_retry(path)
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            f"Retrying {method} {path} in {delay:.2f}s "
            f"(attempt {state.attempt_number}): {exc}"
        )

    async def _send_once(
        self,
        method: str,
        path: str,
        json: Any,
        params: dict[str, Any] | None,
    ) -> Any:
        client = self._get_client()
        url = f"{self._base_url}{path}"

        async with self._semaphore:
            CONNECTIONS_IN_USE.inc()
            start = time.perf_counter()
            try:
                response = await client.request(method, url, json=json, params=params)
            except TRANSIENT_EXCEPTIONS as e:
                track_request(method, path, time.perf_counter() - start, "error")
                raise _TransientFailure(f"{type(e).__name__}: {e}") from e
            except httpx.HTTPError as e:
                track_request(method, path, time.perf_counter() - start, "error")
                raise TransportError(
                    f"Request to Chroma failed: {e}",
                    details={"method": method, "path": path},
                ) from e
            finally:
                CONNECTIONS_IN_USE.dec()

        track_request(method, path, time.perf_counter() - start, response.status_code)

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise _TransientFailure(
                f"Chroma returned {response.status_code}",
                status_code=response.status_code,
            )

        body = self._parse_body(response)
        if response.is_error:
            error = error_from_response(response.status_code, body)
            logger.debug(
                f"{method} {path} -> {response.status_code}: {error.message}"
            )
            raise error
        return body

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            if response.is_error:
                return response.text
            raise TransportError(
                "Chroma returned a non-JSON body",
                code=ErrorCode.RESPONSE_PARSE_ERROR,
                details={"status_code": response.status_code},
            ) from e
