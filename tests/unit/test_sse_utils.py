"""Frame decoding tests ensuring chunk reassembly and SSE field parsing are correct.

This suite validates that:
- The data-line decoder yields the same payloads however the byte stream is split
- Handshake frames are recognized and malformed frames raise FrameDecodeError
- The full SSE parser handles event names, ids, comments, and multi-line data
- Async helpers read payloads and messages from httpx-like responses
"""

from __future__ import annotations

import asyncio
import json
import random
from typing import TYPE_CHECKING

import pytest

from booking_sse_client.exceptions import FrameDecodeError
from booking_sse_client.models import BookingEvent
from booking_sse_client.sse_utils import (
    DataLineDecoder,
    SSEEventParser,
    SSEMessage,
    decode_frame_data,
    iter_data_payloads,
    iter_sse_messages,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

RANDOM_SPLIT_ROUNDS = 200
EXPECTED_PAYLOAD_COUNT = 4


def _event(event_id: str, **metadata: object) -> dict[str, object]:
    return {
        "event_class": "BOOKING_UPDATED",
        "event_id": event_id,
        "booking_id": "booking-123",
        "updated_at": "2024-01-01T00:00:00Z",
        "metadata": metadata,
    }


STREAM = (
    b'data: {"type": "connected", "message": "hello"}\n\n'
    + f"data: {json.dumps(_event('evt-1', note='café ✓'), ensure_ascii=False)}\n\n".encode()
    + b"data: {not json}\n\n"
    + b": keep-alive\n\n"
    + b"event: BOOKING_UPDATED\r\n"
    + f"data: {json.dumps(_event('evt-2'))}\r\n\r\n".encode()
)


def _decode_all(chunks: list[bytes]) -> list[str]:
    decoder = DataLineDecoder()
    payloads: list[str] = []
    for chunk in chunks:
        payloads.extend(decoder.feed(chunk))
    payloads.extend(decoder.flush())
    return payloads


def _split(data: bytes, cuts: list[int]) -> list[bytes]:
    bounds = [0, *sorted(cuts), len(data)]
    return [data[start:end] for start, end in zip(bounds, bounds[1:], strict=False)]


class _ChunkResponse:
    """Minimal async response stub exposing aiter_bytes and aiter_lines."""

    def __init__(self, chunks: list[bytes]) -> None:
        self.headers = {"content-type": "text/event-stream"}
        self._chunks = chunks

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            yield chunk

    async def aiter_lines(self) -> AsyncIterator[str]:
        for line in b"".join(self._chunks).decode("utf-8").splitlines():
            yield line


# =============================================================================
# TESTS
# =============================================================================
class TestDataLineDecoder:
    """Test buffer reassembly of newline-delimited data frames."""

    def test_single_chunk_yields_every_data_line(self) -> None:
        """Given a whole stream in one chunk, when decoded, then every data payload is returned in order."""
        payloads = _decode_all([STREAM])

        assert len(payloads) == EXPECTED_PAYLOAD_COUNT
        assert json.loads(payloads[0])["type"] == "connected"
        assert payloads[2] == "{not json}"
        assert json.loads(payloads[3])["event_id"] == "evt-2"

    def test_every_single_split_point_gives_identical_output(self) -> None:
        """Given the stream split at any one byte offset, when decoded, then the payloads never change."""
        expected = _decode_all([STREAM])

        for cut in range(1, len(STREAM)):
            assert _decode_all(_split(STREAM, [cut])) == expected, f"split at {cut}"

    def test_random_fragmentation_gives_identical_output(self) -> None:
        """Given many random multi-way fragmentations, when decoded, then the payloads never change."""
        expected = _decode_all([STREAM])
        rng = random.Random(20240101)

        for _ in range(RANDOM_SPLIT_ROUNDS):
            cuts = rng.sample(range(1, len(STREAM)), k=rng.randint(1, 40))
            assert _decode_all(_split(STREAM, cuts)) == expected

    def test_byte_at_a_time_keeps_multibyte_characters(self) -> None:
        """Given one byte per chunk, when decoded, then split UTF-8 characters are reassembled."""
        payloads = _decode_all([bytes([byte]) for byte in STREAM])

        assert json.loads(payloads[1])["metadata"]["note"] == "café ✓"

    def test_partial_line_is_buffered(self) -> None:
        """Given an unterminated frame, when fed, then nothing is returned until the newline arrives."""
        decoder = DataLineDecoder()

        assert decoder.feed(b'data: {"a": ') == []
        assert decoder.pending == 'data: {"a": '
        assert decoder.feed(b"1}\n") == ['{"a": 1}']
        assert decoder.pending == ""

    def test_non_data_lines_are_ignored(self) -> None:
        """Given event, id, retry and comment lines, when decoded, then only data lines produce payloads."""
        chunk = b"event: BOOKING_UPDATED\nid: 7\nretry: 1000\n: comment\ndata:no-space\ndata: x\n\n"

        assert _decode_all([chunk]) == ["x"]

    def test_flush_returns_unterminated_final_frame(self) -> None:
        """Given a stream that ends without a newline, when flushed, then the last frame is returned."""
        decoder = DataLineDecoder()
        decoder.feed(b"data: tail")

        assert decoder.flush() == ["tail"]
        assert decoder.flush() == []


class TestDecodeFrameData:
    """Test decoding of individual frame payloads."""

    def test_booking_event_is_decoded(self) -> None:
        """Given a booking payload, when decoded, then a BookingEvent is returned."""
        event = decode_frame_data(json.dumps(_event("evt-9", source="test")))

        assert isinstance(event, BookingEvent)
        assert event.event_id == "evt-9"
        assert event.metadata == {"source": "test"}

    def test_handshake_is_not_an_event(self) -> None:
        """Given a connected handshake, when decoded, then None is returned."""
        assert decode_frame_data('{"type": "connected", "message": "ok"}') is None

    @pytest.mark.parametrize(
        "raw",
        ["{not json}", "[1, 2, 3]", '"text"', '{"event_id": "evt-1"}'],
    )
    def test_invalid_payloads_raise(self, raw: str) -> None:
        """Given malformed or incomplete payloads, when decoded, then FrameDecodeError carries the raw text."""
        with pytest.raises(FrameDecodeError) as excinfo:
            decode_frame_data(raw)

        assert excinfo.value.raw == raw


class TestSSEEventParser:
    """Test the full server-sent event parser."""

    def _parse(self, lines: list[str]) -> list[SSEMessage]:
        parser = SSEEventParser()
        messages = [message for line in lines if (message := parser.feed_line(line))]
        if (tail := parser.flush()) is not None:
            messages.append(tail)
        return messages

    def test_default_channel_is_message(self) -> None:
        """Given a frame without an event field, when parsed, then the channel is message."""
        assert self._parse(["data: {}", ""]) == [SSEMessage(event="message", data="{}")]

    def test_named_channel_and_id(self) -> None:
        """Given event and id fields, when parsed, then both are attached to the message."""
        messages = self._parse(["id: 42", "event: BOOKING_UPDATED", "data: {}", ""])

        assert messages == [SSEMessage(event="BOOKING_UPDATED", data="{}", id="42")]

    def test_multiline_data_is_joined(self) -> None:
        """Given several data lines, when parsed, then they are joined with newlines."""
        messages = self._parse(["data: first", "data: second", ""])

        assert messages[0].data == "first\nsecond"

    def test_comments_and_empty_events_are_skipped(self) -> None:
        """Given comments and blank separators only, when parsed, then nothing is dispatched."""
        assert self._parse([": ping", "", "event: noise", ""]) == []

    def test_event_name_resets_after_dispatch(self) -> None:
        """Given a named event followed by an unnamed one, when parsed, then the second is on message."""
        messages = self._parse(["event: BOOKING_UPDATED", "data: a", "", "data: b", ""])

        assert [message.event for message in messages] == ["BOOKING_UPDATED", "message"]

    def test_unterminated_event_is_flushed(self) -> None:
        """Given a stream ending mid-event, when flushed, then the pending event is dispatched."""
        assert self._parse(["data: last"]) == [SSEMessage(event="message", data="last")]


def test_iter_data_payloads_reads_byte_chunks() -> None:
    """Given an async byte response, when iterated, then payloads are yielded in order."""
    response = _ChunkResponse([b"data: on", b"e\n\ndata: two\n\n"])

    async def collect() -> list[str]:
        return [payload async for payload in iter_data_payloads(response)]

    assert asyncio.run(collect()) == ["one", "two"]


def test_iter_sse_messages_reads_lines() -> None:
    """Given an async line response, when iterated, then dispatched messages are yielded."""
    response = _ChunkResponse([b"event: BOOKING_UPDATED\ndata: x\n\ndata: y\n\n"])

    async def collect() -> list[SSEMessage]:
        return [message async for message in iter_sse_messages(response)]

    assert asyncio.run(collect()) == [
        SSEMessage(event="BOOKING_UPDATED", data="x"),
        SSEMessage(event="message", data="y"),
    ]
