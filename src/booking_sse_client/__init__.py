"""Booking SSE Client.

An asyncio client for a server-sent-event stream of booking-update
notifications. It subscribes to one booking, decodes ``data:`` frames into
typed `BookingEvent` records, and can trigger a test publish into the same
stream, either manually or once per session after a fixed delay.

Quick Start
-----------
1. Install the package: ``pip install booking-sse-client``
2. Point it at the service: ``export SSE_BASE_URL=http://localhost:8081 API_KEY=...``
3. Watch a booking from the shell: ``booking-sse-client --booking-id booking-123``

Or drive a session from code:

>>> import asyncio
>>> from booking_sse_client import ClientConfig, SessionOrchestrator
>>> async def main():
...     async with SessionOrchestrator(ClientConfig.from_env()) as session:
...         session.on_event(print)
...         await session.start()
...         await asyncio.sleep(15)
>>> # asyncio.run(main())

Components
----------
- **StreamClient**: subscription, frame decoding, connection status
- **PublishClient**: one POST per publish, typed result instead of exceptions
- **SessionOrchestrator**: start/stop, one-shot auto-publish, received events

Configuration
-------------
Environment variables, resolved once by `ClientConfig.from_env`:
- ``SSE_BASE_URL``: Service base URL (default ``http://localhost:8081``)
- ``API_KEY``: Credential sent with every request
- ``SSE_BOOKING_ID``: Default booking (default ``booking-123``)
- ``SSE_CREDENTIAL_PLACEMENT``: ``query`` (``?k=``) or ``header`` (``X-API-Key``)
- ``SSE_TRANSPORT``: ``byte_stream`` or ``event_source``
- ``SSE_AUTO_PUBLISH_DELAY``: Seconds before the automatic publish (default 10)
- ``SSE_TIMEOUT``: Connect/write/pool timeout in seconds (default 30)
- ``SSE_DEBUG``: Enable debug logging

See Also
--------
- `exceptions`: Error taxonomy
- `sse_utils`: Frame decoders
"""

from __future__ import annotations

from ._version import __version__
from .config import ClientConfig, CredentialPlacement, TransportKind
from .exceptions import (
    BookingSSEError,
    ConfigurationError,
    FrameDecodeError,
    PublishError,
    TransportError,
    TransportOpenError,
    TransportStreamError,
)
from .models import BookingEvent, ConnectionState, ConnectionStatus
from .orchestrator import SessionOrchestrator
from .publish_client import PublishAck, PublishClient
from .stream_client import StreamClient, StreamHandle

__all__ = [
    "BookingEvent",
    "BookingSSEError",
    "ClientConfig",
    "ConfigurationError",
    "ConnectionState",
    "ConnectionStatus",
    "CredentialPlacement",
    "FrameDecodeError",
    "PublishAck",
    "PublishClient",
    "PublishError",
    "SessionOrchestrator",
    "StreamClient",
    "StreamHandle",
    "TransportError",
    "TransportKind",
    "TransportOpenError",
    "TransportStreamError",
    "__version__",
]
