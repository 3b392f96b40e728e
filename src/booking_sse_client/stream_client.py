"""Long-lived subscription to a booking event stream.

`StreamClient` opens ``GET {base}/api/sse/subscribe/bookings/{booking_id}`` with
httpx, reads it in a background task, and delivers decoded `BookingEvent`s to
registered sinks in arrival order. Connection status changes are reported to
status listeners; the client never reconnects on its own.

Status transitions
------------------
- ``CONNECTING`` as soon as `StreamClient.connect` is called
- ``CONNECTED`` once response headers arrive with a 2xx status
- ``ERRORED(retryable=False)`` when the stream cannot be opened
- ``ERRORED(retryable=True)`` when an open stream fails mid-read
- ``DISCONNECTED`` ("Connection closed") when the server ends the stream
- ``DISCONNECTED`` after `StreamClient.disconnect`

Examples
--------
>>> client = StreamClient(ClientConfig(api_key="secret"))
>>> client.on_event(lambda event: print(event.event_id))
>>> handle = await client.connect("booking-123")
>>> ...
>>> await client.disconnect(handle)
>>> await client.aclose()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from . import constants
from .config import ClientConfig
from .exceptions import FrameDecodeError, TransportOpenError, TransportStreamError
from .models import BookingEvent, ConnectionStatus
from .sse_utils import decode_frame_data
from .transports import StreamBackend, backend_for

if TYPE_CHECKING:
    from collections.abc import Callable

    EventSink = Callable[[BookingEvent], None]
    StatusListener = Callable[["StreamHandle", ConnectionStatus], None]

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class StreamHandle:
    """Handle for one open subscription.

    Attributes
    ----------
    booking_id : str
        Booking the subscription targets
    url : str
        Subscribe URL without credentials
    status : ConnectionStatus
        Most recent status of this subscription
    events_received : int
        Number of booking events delivered to sinks
    """

    booking_id: str
    url: str
    status: ConnectionStatus = field(default_factory=ConnectionStatus.connecting)
    events_received: int = 0
    _task: asyncio.Task[None] | None = field(default=None, repr=False)
    _closed: bool = field(default=False, repr=False)

    @property
    def closed(self) -> bool:
        """Whether `StreamClient.disconnect` has been called for this handle."""
        return self._closed

    @property
    def task(self) -> asyncio.Task[None] | None:
        """Reader task serving this subscription."""
        return self._task

    def attach(self, task: asyncio.Task[None]) -> None:
        self._task = task

    def mark_closed(self) -> None:
        self._closed = True


def _stream_timeout(seconds: float) -> httpx.Timeout:
    # Streams stay idle between events, so reads never time out.
    return httpx.Timeout(seconds, read=None)


class StreamClient:
    """Subscribe to booking events over server-sent events.

    Parameters
    ----------
    config : ClientConfig | None
        Resolved configuration; read from the environment when omitted
    http_client : httpx.AsyncClient | None
        Client to use; one is created (and owned) when omitted
    backend : StreamBackend | None
        Decoding backend; chosen from ``config.transport`` when omitted
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        backend: StreamBackend | None = None,
    ) -> None:
        self.config = config or ClientConfig.from_env()
        self.backend = backend or backend_for(self.config.transport)
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=_stream_timeout(self.config.timeout)
        )
        self._sinks: list[EventSink] = []
        self._status_listeners: list[StatusListener] = []

    def on_event(self, sink: EventSink) -> Callable[[], None]:
        """Register an event sink; returns a callable that unregisters it."""
        self._sinks.append(sink)

        def _unsubscribe() -> None:
            if sink in self._sinks:
                self._sinks.remove(sink)

        return _unsubscribe

    def on_status(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener; returns a callable that unregisters it."""
        self._status_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._status_listeners:
                self._status_listeners.remove(listener)

        return _unsubscribe

    async def connect(self, booking_id: str | None = None) -> StreamHandle:
        """Start reading the stream for ``booking_id`` in a background task.

        Returns immediately with the handle in ``CONNECTING`` state; the
        transport is opened by the reader task.

        Parameters
        ----------
        booking_id : str | None
            Booking to subscribe to; defaults to ``config.booking_id``

        Returns
        -------
        StreamHandle
            Handle to pass to `disconnect`
        """
        booking_id = booking_id or self.config.booking_id
        handle = StreamHandle(booking_id=booking_id, url=self.config.subscribe_url(booking_id))
        logger.debug("Opening event stream %s", handle.url)
        self._set_status(handle, ConnectionStatus.connecting())
        handle.attach(
            asyncio.create_task(self._read_stream(handle), name=f"booking-sse:{booking_id}")
        )
        return handle

    async def disconnect(self, handle: StreamHandle | None) -> None:
        """Close a subscription.

        Safe to call with ``None``, with a handle whose stream already ended,
        or more than once. Once this returns no further events are delivered
        for the handle.
        """
        if handle is None or handle.closed:
            return

        handle.mark_closed()
        task = handle.task
        if task is not None and not task.done():
            task.cancel()
            # A sink may disconnect from inside the reader task itself.
            if task is not asyncio.current_task():
                await asyncio.wait({task})

        handle.status = ConnectionStatus.disconnected()
        self._notify_status(handle)
        logger.info("Event stream for %s disconnected", handle.booking_id)

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> StreamClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: BaseException | None,
    ) -> None:
        await self.aclose()

    def _request_headers(self) -> dict[str, str]:
        return {
            "Accept": constants.EVENT_STREAM_CONTENT_TYPE,
            "Cache-Control": "no-cache",
            **self.config.credential_headers(),
        }

    async def _read_stream(self, handle: StreamHandle) -> None:
        try:
            await self._consume(handle)
        except TransportOpenError as exc:
            logger.error("Failed to open event stream for %s: %s", handle.booking_id, exc)
            self._set_status(handle, ConnectionStatus.errored(retryable=False, detail=str(exc)))
        except TransportStreamError as exc:
            logger.error("Event stream for %s failed: %s", handle.booking_id, exc)
            self._set_status(handle, ConnectionStatus.errored(retryable=True, detail=str(exc)))
        else:
            logger.info("Event stream for %s closed by server", handle.booking_id)
            self._set_status(handle, ConnectionStatus.closed())

    async def _consume(self, handle: StreamHandle) -> None:
        try:
            async with self._http_client.stream(
                "GET",
                handle.url,
                params=self.config.credential_params(),
                headers=self._request_headers(),
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise TransportOpenError(
                        f"Subscribe returned {response.status_code}: {body}",
                        status_code=response.status_code,
                    )

                logger.info("Event stream for %s opened", handle.booking_id)
                self._set_status(handle, ConnectionStatus.connected())

                try:
                    async for payload in self.backend.payloads(response):
                        self._handle_payload(handle, payload)
                except httpx.HTTPError as exc:
                    raise TransportStreamError(f"Stream read failed: {exc!r}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportOpenError(f"Could not connect to {handle.url}: {exc!r}") from exc

    def _handle_payload(self, handle: StreamHandle, payload: str) -> None:
        if handle.closed:
            return

        try:
            event = decode_frame_data(payload)
        except FrameDecodeError as exc:
            logger.warning("Dropping malformed SSE frame: %s", exc, extra={"raw": exc.raw})
            return

        if event is None:
            return

        handle.events_received += 1
        logger.debug("Booking event received: %s", event.event_id)
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception:
                logger.exception("Event sink %r failed for %s", sink, event.event_id)

    def _set_status(self, handle: StreamHandle, status: ConnectionStatus) -> None:
        if handle.closed:
            return
        handle.status = status
        self._notify_status(handle)

    def _notify_status(self, handle: StreamHandle) -> None:
        for listener in list(self._status_listeners):
            try:
                listener(handle, handle.status)
            except Exception:
                logger.exception("Status listener %r failed", listener)
