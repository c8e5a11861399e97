"""Tests for the connection manager."""

import asyncio

import httpx
import pytest

from chroma_client.config import ChromaSettings
from chroma_client.connection import ConnectionManager
from chroma_client.exceptions import (
    ChromaConnectionError,
    ConfigurationError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    TransportError,
)
from tests.fake_server import FakeChromaServer


class TestEndpointResolution:
    """Tests for endpoint parsing."""

    def test_defaults_from_settings(self) -> None:
        """Without an endpoint the settings host and port are used."""
        manager = ConnectionManager(settings=ChromaSettings(host="db", port=9000))
        assert manager.base_url == "http://db:9000"

    def test_ssl_scheme(self) -> None:
        """SSL switches the scheme to https."""
        manager = ConnectionManager(settings=ChromaSettings(ssl=True))
        assert manager.base_url == "https://localhost:8000"

    def test_host_port_endpoint(self) -> None:
        """A bare host:port endpoint gets a scheme."""
        manager = ConnectionManager(settings=ChromaSettings(), endpoint="db:8001")
        assert manager.base_url == "http://db:8001"

    def test_full_url_endpoint(self) -> None:
        """A full URL is used as is, without a trailing slash."""
        manager = ConnectionManager(
            settings=ChromaSettings(), endpoint="https://chroma.example.com/"
        )
        assert manager.base_url == "https://chroma.example.com"

    def test_invalid_endpoint(self) -> None:
        """Unsupported schemes are rejected."""
        with pytest.raises(ConfigurationError):
            ConnectionManager(settings=ChromaSettings(), endpoint="ftp://db:21")

    def test_scope_params(self) -> None:
        """Tenant and database are exposed as query parameters."""
        manager = ConnectionManager(
            settings=ChromaSettings(tenant="acme", database="prod")
        )
        assert manager.scope == {"tenant": "acme", "database": "prod"}


class TestConnect:
    """Tests for establishing a connection."""

    @pytest.mark.asyncio
    async def test_connect_checks_heartbeat(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """Connecting sends a heartbeat."""
        manager = await ConnectionManager.connect(settings=settings, client=http_client)

        assert manager.base_url == "http://chroma.test:8000"
        assert fake_server.calls("/heartbeat")

    @pytest.mark.asyncio
    async def test_connect_unreachable(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """Unreachable host raises ChromaConnectionError."""
        fake_server.fail_next(*[httpx.ConnectError] * 3)

        with pytest.raises(ChromaConnectionError) as exc_info:
            await ConnectionManager.connect(settings=settings, client=http_client)

        assert exc_info.value.code == ErrorCode.CONNECTION_ERROR
        assert exc_info.value.details["url"] == "http://chroma.test:8000"

    @pytest.mark.asyncio
    async def test_connect_timeout(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """Heartbeat timeouts raise ChromaConnectionError."""
        fake_server.fail_next(*[httpx.ConnectTimeout] * 3)

        with pytest.raises(ChromaConnectionError):
            await ConnectionManager.connect(settings=settings, client=http_client)

    @pytest.mark.asyncio
    async def test_connect_recovers_from_transient_failure(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """A single failed heartbeat is retried."""
        fake_server.fail_next(httpx.ConnectError)

        manager = await ConnectionManager.connect(settings=settings, client=http_client)

        assert await manager.heartbeat() == 1_700_000_000_000


class TestSend:
    """Tests for request sending and retries."""

    @pytest.mark.asyncio
    async def test_send_returns_json(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
    ) -> None:
        """Decoded JSON body is returned."""
        manager = ConnectionManager(settings=settings, client=http_client)
        assert await manager.send("GET", "/version") == "0.5.23"

    @pytest.mark.asyncio
    async def test_retries_transient_status(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """503 responses are retried until success."""
        fake_server.fail_next(503, 502)
        manager = ConnectionManager(settings=settings, client=http_client)

        assert await manager.send("GET", "/version") == "0.5.23"
        assert len(fake_server.calls("/version")) == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """TransportError after max_retries + 1 attempts."""
        fake_server.fail_next(httpx.ReadTimeout, httpx.ReadTimeout, httpx.ReadTimeout)
        manager = ConnectionManager(settings=settings, client=http_client)

        with pytest.raises(TransportError) as exc_info:
            await manager.send("GET", "/version")

        assert exc_info.value.code == ErrorCode.RETRIES_EXHAUSTED
        assert exc_info.value.details["attempts"] == 3
        assert len(fake_server.calls("/version")) == 3

    @pytest.mark.asyncio
    async def test_no_retries_when_disabled(
        self,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """max_retries=0 makes a single attempt."""
        settings = ChromaSettings(host="chroma.test", max_retries=0)
        fake_server.fail_next(503)
        manager = ConnectionManager(settings=settings, client=http_client)

        with pytest.raises(TransportError):
            await manager.send("GET", "/version")

        assert len(fake_server.calls("/version")) == 1

    @pytest.mark.asyncio
    async def test_conflict_not_retried(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """Conflict errors surface immediately."""
        manager = ConnectionManager(settings=settings, client=http_client)
        await manager.send("POST", "/collections", json={"name": "docs"})

        with pytest.raises(ConflictError):
            await manager.send("POST", "/collections", json={"name": "docs"})

        assert len(fake_server.calls("/collections")) == 2

    @pytest.mark.asyncio
    async def test_not_found_not_retried(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """Not-found errors surface immediately."""
        manager = ConnectionManager(settings=settings, client=http_client)

        with pytest.raises(NotFoundError):
            await manager.send("GET", "/collections/missing")

        assert len(fake_server.calls("/collections/missing")) == 1

    @pytest.mark.asyncio
    async def test_server_error_not_retried(
        self,
        settings: ChromaSettings,
        fake_server: FakeChromaServer,
    ) -> None:
        """A plain 500 is a TransportError without retries."""

        def handler(request: httpx.Request) -> httpx.Response:
            fake_server.requests.append((request.method, request.url.path, None))
            return httpx.Response(500, json={"error": "InternalError", "message": "boom"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            manager = ConnectionManager(settings=settings, client=http)
            with pytest.raises(TransportError) as exc_info:
                await manager.send("GET", "/version")

        assert exc_info.value.code == ErrorCode.TRANSPORT_ERROR
        assert exc_info.value.details["status_code"] == 500
        assert len(fake_server.requests) == 1

    @pytest.mark.asyncio
    async def test_non_json_body(self, settings: ChromaSettings) -> None:
        """A successful non-JSON body is a parse error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            manager = ConnectionManager(settings=settings, client=http)
            with pytest.raises(TransportError) as exc_info:
                await manager.send("GET", "/version")

        assert exc_info.value.code == ErrorCode.RESPONSE_PARSE_ERROR

    @pytest.mark.asyncio
    async def test_bearer_token_header(self) -> None:
        """Auth token is sent as a bearer header on owned clients."""
        settings = ChromaSettings(auth_token="s3cret")
        manager = ConnectionManager(settings=settings)

        client = manager._get_client()

        assert client.headers["Authorization"] == "Bearer s3cret"
        await manager.close()


class TestConcurrency:
    """Tests for pool bounds and cancellation."""

    @pytest.mark.asyncio
    async def test_in_flight_requests_bounded(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """No more than max_connections requests run at once."""
        fake_server.delay = 0.01
        manager = ConnectionManager(settings=settings, client=http_client)

        await asyncio.gather(*(manager.send("GET", "/version") for _ in range(12)))

        assert fake_server.max_in_flight == settings.max_connections

    @pytest.mark.asyncio
    async def test_cancellation_propagates(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
        fake_server: FakeChromaServer,
    ) -> None:
        """Cancelling a request raises CancelledError and frees the slot."""
        fake_server.delay = 10
        manager = ConnectionManager(settings=settings, client=http_client)

        task = asyncio.create_task(manager.send("GET", "/version"))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(fake_server.calls("/version")) == 1
        fake_server.delay = 0
        results = await asyncio.gather(
            *(manager.send("GET", "/version") for _ in range(settings.max_connections))
        )
        assert results == ["0.5.23"] * settings.max_connections


class TestClose:
    """Tests for resource cleanup."""

    @pytest.mark.asyncio
    async def test_close_owned_client(self) -> None:
        """Owned client is closed and dropped."""
        manager = ConnectionManager(settings=ChromaSettings())
        client = manager._get_client()

        await manager.close()

        assert client.is_closed
        assert manager._client is None

    @pytest.mark.asyncio
    async def test_close_leaves_injected_client(
        self,
        settings: ChromaSettings,
        http_client: httpx.AsyncClient,
    ) -> None:
        """Injected clients are left open for their owner."""
        async with ConnectionManager(settings=settings, client=http_client):
            pass

        assert not http_client.is_closed
