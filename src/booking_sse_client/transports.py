"""Interchangeable stream decoding backends.

Both backends read the same ``text/event-stream`` response opened by
`StreamClient`; they differ only in how frames are extracted from it.

- `ByteStreamBackend` reassembles raw byte chunks into lines and decodes every
  ``data: `` line, regardless of any ``event:`` name.
- `EventSourceBackend` parses complete server-sent events the way a browser
  ``EventSource`` does and routes both the default ``message`` channel and the
  named ``BOOKING_UPDATED`` channel to the same handler.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from . import constants
from .config import TransportKind
from .sse_utils import iter_data_payloads, iter_sse_messages

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

logger = logging.getLogger(__name__)


class StreamBackend(ABC):
    """Extracts frame payloads from an open event-stream response."""

    kind: TransportKind

    @abstractmethod
    def payloads(self, response: httpx.Response) -> AsyncIterator[str]:
        """Yield JSON payload strings in arrival order."""


class ByteStreamBackend(StreamBackend):
    kind = TransportKind.BYTE_STREAM

    async def payloads(self, response: httpx.Response) -> AsyncIterator[str]:
        async for payload in iter_data_payloads(response):
            logger.debug("Raw SSE frame received: %s", payload)
            yield payload


class EventSourceBackend(StreamBackend):
    """Event-source style backend.

    Parameters
    ----------
    channels : frozenset[str]
        Event names treated as booking events; anything else is ignored
    """

    kind = TransportKind.EVENT_SOURCE

    def __init__(self, channels: frozenset[str] = constants.BOOKING_EVENT_CHANNELS) -> None:
        self.channels = channels

    async def payloads(self, response: httpx.Response) -> AsyncIterator[str]:
        async for message in iter_sse_messages(response):
            if message.event not in self.channels:
                logger.debug("Ignoring SSE event on channel %r", message.event)
                continue
            logger.debug("SSE %s event received: %s", message.event, message.data)
            yield message.data


def backend_for(kind: TransportKind | str) -> StreamBackend:
    """Return the backend configured for ``kind``."""
    kind = TransportKind(kind)
    if kind is TransportKind.EVENT_SOURCE:
        return EventSourceBackend()
    return ByteStreamBackend()
