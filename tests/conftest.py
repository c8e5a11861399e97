"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator

import httpx
import pytest

from chroma_client.client import ChromaClient, connect
from chroma_client.config import ChromaSettings
from tests.fake_server import FakeChromaServer


@pytest.fixture
def fake_server() -> FakeChromaServer:
    """Fresh in-memory Chroma server."""
    return FakeChromaServer()


@pytest.fixture
def settings() -> ChromaSettings:
    """Settings with fast retries for tests."""
    return ChromaSettings(
        host="chroma.test",
        port=8000,
        max_retries=2,
        backoff_base=0.001,
        backoff_max=0.005,
        max_connections=4,
    )


@pytest.fixture
async def http_client(
    fake_server: FakeChromaServer,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client routed to the fake server."""
    transport = httpx.MockTransport(fake_server)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
async def client(
    settings: ChromaSettings,
    http_client: httpx.AsyncClient,
) -> AsyncGenerator[ChromaClient, None]:
    """Connected ChromaClient backed by the fake server.

    Yields:
        ChromaClient ready for use.
    """
    chroma = await connect(settings=settings, client=http_client)
    async with chroma:
        yield chroma
