"""Given booking SSE fixtures, when tests request them, then consistent configuration,
sample frames, and an in-memory SSE service are provisioned for deterministic scenarios.

This conftest module centralizes reusable fixtures for the suite. It builds a client
configuration pointing at a fake host, serializes sample booking events into wire
frames, and wires an httpx MockTransport-backed service so no test touches the network
or the caller's environment.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from booking_sse_client import constants
from booking_sse_client.config import ClientConfig
from tests.integration.mock_sse_api import MockSSEServer, frame

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

TEST_BASE_URL = "http://sse.test"
TEST_API_KEY = "test-key"
TEST_BOOKING_ID = "booking-123"


# =============================================================================
# FIXTURES
# =============================================================================
@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove configuration variables so tests never see the caller's environment."""
    for name in (
        constants.ENV_BASE_URL,
        constants.ENV_API_KEY,
        constants.ENV_BOOKING_ID,
        constants.ENV_CREDENTIAL_PLACEMENT,
        constants.ENV_TRANSPORT,
        constants.ENV_AUTO_PUBLISH_DELAY,
        constants.ENV_TIMEOUT,
        constants.ENV_DEBUG,
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> ClientConfig:
    """Return a configuration aimed at the fake host with a short auto-publish delay."""
    return ClientConfig(
        base_url=TEST_BASE_URL,
        api_key=TEST_API_KEY,
        booking_id=TEST_BOOKING_ID,
        auto_publish_delay=0.05,
        timeout=5.0,
    )


@pytest.fixture
def booking_payload() -> dict[str, Any]:
    """Return the wire form of a single BOOKING_UPDATED event."""
    return {
        "event_class": "BOOKING_UPDATED",
        "event_id": "evt-1",
        "booking_id": TEST_BOOKING_ID,
        "updated_at": "2024-01-01T00:00:00Z",
        "metadata": {},
    }


@pytest.fixture
def handshake_frame() -> bytes:
    """Return the conventional first frame of a subscription."""
    return frame({"type": "connected", "message": "Subscribed to booking-123"})


@pytest.fixture
def sse_server() -> MockSSEServer:
    """Return an in-memory SSE service with an empty, open stream."""
    return MockSSEServer()


@pytest.fixture
async def http_client(sse_server: MockSSEServer) -> AsyncIterator[httpx.AsyncClient]:
    """Yield an AsyncClient routed to the in-memory SSE service."""
    client = sse_server.client()
    try:
        yield client
    finally:
        sse_server.close_stream()
        await client.aclose()
