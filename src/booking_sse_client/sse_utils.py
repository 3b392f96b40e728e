"""SSE utilities for decoding booking event streams."""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from . import constants
from .exceptions import FrameDecodeError
from .models import BookingEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SSEMessage:
    """One dispatched server-sent event."""

    event: str
    data: str
    id: str | None = None


def decode_frame_data(data: str) -> BookingEvent | None:
    """Decode the payload of a single ``data:`` frame.

    Parameters
    ----------
    data : str
        Frame payload with the ``data: `` prefix already removed

    Returns
    -------
    BookingEvent | None
        The decoded event, or ``None`` for a ``connected`` handshake frame

    Raises
    ------
    FrameDecodeError
        If the payload is not JSON, not an object, or not a booking event
    """
    try:
        payload: Any = json.loads(data)
    except json.JSONDecodeError as exc:
        raise FrameDecodeError(f"Frame is not valid JSON: {exc}", raw=data) from exc

    if not isinstance(payload, dict):
        raise FrameDecodeError("Frame payload is not a JSON object", raw=data)

    if payload.get("type") == constants.HANDSHAKE_TYPE:
        logger.debug("Stream handshake received: %s", payload.get("message"))
        return None

    try:
        return BookingEvent.from_payload(payload)
    except FrameDecodeError as exc:
        exc.raw = data
        raise


class DataLineDecoder:
    """Incremental decoder for newline-delimited ``data: `` frames.

    Bytes are decoded with an incremental UTF-8 decoder, so a multi-byte
    character split across two chunks is reassembled. Complete lines are
    scanned for the ``data: `` prefix; the trailing partial line is kept in
    the buffer until the next chunk arrives.

    Examples
    --------
    >>> decoder = DataLineDecoder()
    >>> decoder.feed(b'data: {"a"')
    []
    >>> decoder.feed(b": 1}\\n\\n")
    ['{"a": 1}']
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """Append a chunk and return payloads of the frames it completed."""
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        if not text:
            return []

        lines = (self._buffer + text).split("\n")
        self._buffer = lines.pop()
        return [payload for line in lines if (payload := _data_payload(line)) is not None]

    def flush(self) -> list[str]:
        """Return the payload of a final unterminated frame, if any."""
        remainder = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        payload = _data_payload(remainder)
        return [] if payload is None else [payload]


def _data_payload(line: str) -> str | None:
    line = line.rstrip("\r")
    if line.startswith(constants.DATA_PREFIX):
        return line[len(constants.DATA_PREFIX) :]
    return None


class SSEEventParser:
    """Line-oriented parser for the full server-sent event format.

    Handles ``event:``, ``data:`` and ``id:`` fields, joins multi-line data
    with newlines, ignores ``:`` comment lines, and dispatches on blank lines.
    """

    def __init__(self) -> None:
        self._event_type: str | None = None
        self._data_lines: list[str] = []
        self._last_event_id: str | None = None

    @property
    def last_event_id(self) -> str | None:
        return self._last_event_id

    def feed_line(self, line: str) -> SSEMessage | None:
        """Consume one line; return a message when the line ends an event."""
        line = line.rstrip("\r")
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event_type = value
        elif name == "data":
            self._data_lines.append(value)
        elif name == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif name != "retry":
            logger.debug("Ignoring unknown SSE field", extra={"field": name})
        return None

    def flush(self) -> SSEMessage | None:
        """Dispatch an event left open when the stream ended."""
        return self._dispatch()

    def _dispatch(self) -> SSEMessage | None:
        event_type = self._event_type or constants.DEFAULT_EVENT_CHANNEL
        data_lines = self._data_lines
        self._event_type = None
        self._data_lines = []
        if not data_lines:
            return None
        return SSEMessage(event=event_type, data="\n".join(data_lines), id=self._last_event_id)


async def iter_data_payloads(response: httpx.Response) -> AsyncIterator[str]:
    """Yield ``data: `` frame payloads from a raw byte stream.

    Parameters
    ----------
    response : httpx.Response
        Streaming response with a ``text/event-stream`` body

    Yields
    ------
    str
        Frame payloads, prefix removed, in arrival order
    """
    decoder = DataLineDecoder()
    async for chunk in response.aiter_bytes():
        for payload in decoder.feed(chunk):
            yield payload
    for payload in decoder.flush():
        yield payload


async def iter_sse_messages(response: httpx.Response) -> AsyncIterator[SSEMessage]:
    """Yield dispatched events from a streaming response.

    Examples
    --------
    >>> async for message in iter_sse_messages(response):
    ...     print(message.event, message.data)
    """
    parser = SSEEventParser()
    # aiter_lines already splits on \n, \r\n and \r
    async for line in response.aiter_lines():
        message = parser.feed_line(line)
        if message is not None:
            yield message

    message = parser.flush()
    if message is not None:
        yield message
