"""Session orchestration for the booking SSE client.

`SessionOrchestrator` composes a `StreamClient` and a `PublishClient` into the
single live session a presentation layer drives:

1. **start**: tear down any previous session, open a new stream
2. **auto-publish**: on the first successful open, arm a one-shot publish after
   ``auto_publish_delay`` seconds (at most one per session)
3. **receive**: append decoded events to ``received_events`` in arrival order
4. **stop**: close the stream, cancel the pending publish, reset state

All per-session mutable state lives in one `SessionState` value, so replacing
the session always goes through the same teardown.

Examples
--------
>>> async with SessionOrchestrator(ClientConfig.from_env()) as session:
...     await session.start()
...     await asyncio.sleep(15)
...     print([event.event_id for event in session.received_events])
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .config import ClientConfig
from .models import BookingEvent, ConnectionStatus
from .publish_client import PublishAck, PublishClient, PublishResult
from .stream_client import StreamClient, StreamHandle

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Mutable state of the one live session."""

    handle: StreamHandle | None = None
    auto_publish_scheduled: bool = False
    auto_publish_timer: asyncio.TimerHandle | None = None
    auto_publish_task: asyncio.Task[None] | None = None


async def _cancel_task(task: asyncio.Task[None] | None) -> None:
    if task is None or task.done():
        return
    task.cancel()
    if task is not asyncio.current_task():
        await asyncio.wait({task})


class SessionOrchestrator:
    """Drive one booking subscription plus its delayed test publish.

    Parameters
    ----------
    config : ClientConfig | None
        Resolved configuration; read from the environment when omitted
    stream_client : StreamClient | None
        Stream client to use; one is created (and owned) when omitted
    publish_client : PublishClient | None
        Publish client to use; one is created (and owned) when omitted
    auto_publish : bool
        Whether to arm the one-shot publish when a session opens
    auto_publish_delay : float | None
        Seconds before the one-shot publish; defaults to
        ``config.auto_publish_delay``
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        stream_client: StreamClient | None = None,
        publish_client: PublishClient | None = None,
        auto_publish: bool = True,
        auto_publish_delay: float | None = None,
    ) -> None:
        self.config = config or ClientConfig.from_env()
        self._owned_clients: list[StreamClient | PublishClient] = []
        if stream_client is None:
            stream_client = StreamClient(self.config)
            self._owned_clients.append(stream_client)
        if publish_client is None:
            publish_client = PublishClient(self.config)
            self._owned_clients.append(publish_client)
        self.stream_client = stream_client
        self.publish_client = publish_client

        self.auto_publish = auto_publish
        self.auto_publish_delay = (
            self.config.auto_publish_delay if auto_publish_delay is None else auto_publish_delay
        )

        self._session: SessionState | None = None
        self._status = ConnectionStatus.disconnected()
        self._events: list[BookingEvent] = []
        self._last_publish_result: PublishResult | None = None
        self._event_listeners: list[Callable[[BookingEvent], None]] = []
        self._status_listeners: list[Callable[[ConnectionStatus], None]] = []

        self._unsubscribers = [
            self.stream_client.on_event(self._on_stream_event),
            self.stream_client.on_status(self._on_stream_status),
        ]

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------
    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def received_events(self) -> tuple[BookingEvent, ...]:
        """Events received so far, oldest first."""
        return tuple(self._events)

    @property
    def auto_publish_scheduled(self) -> bool:
        return self._session is not None and self._session.auto_publish_scheduled

    @property
    def auto_publish_pending(self) -> bool:
        """Whether a one-shot publish timer is armed and has not fired yet."""
        return self._session is not None and self._session.auto_publish_timer is not None

    @property
    def last_publish_result(self) -> PublishResult | None:
        return self._last_publish_result

    @property
    def active(self) -> bool:
        return self._session is not None

    def clear_events(self) -> None:
        self._events.clear()

    def on_event(self, listener: Callable[[BookingEvent], None]) -> None:
        self._event_listeners.append(listener)

    def on_status(self, listener: Callable[[ConnectionStatus], None]) -> None:
        self._status_listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, booking_id: str | None = None) -> StreamHandle:
        """Open a new session, replacing any live one.

        The previous session's stream is closed and its pending publish is
        cancelled before the new stream is opened.

        Parameters
        ----------
        booking_id : str | None
            Booking to subscribe to; defaults to ``config.booking_id``

        Returns
        -------
        StreamHandle
            Handle of the new subscription
        """
        previous, self._session = self._session, None
        if previous is not None:
            logger.debug("Replacing live session before starting a new one")
            await self._teardown(previous)

        session = SessionState()
        self._session = session
        session.handle = await self.stream_client.connect(booking_id)
        return session.handle

    async def stop(self) -> None:
        """Tear down the live session, if any.

        Idempotent: calling it twice, or before `start`, leaves the
        orchestrator ``DISCONNECTED`` with no pending publish.
        """
        session, self._session = self._session, None
        if session is not None:
            await self._teardown(session)
            logger.info("Session stopped")
        self._set_status(ConnectionStatus.disconnected())

    async def publish_now(
        self,
        *,
        user_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> PublishResult:
        """Publish a booking update immediately.

        Independent of the automatic one-shot; does not touch the session.
        """
        result = await self.publish_client.publish(
            self._booking_id(), user_id=user_id, metadata=metadata
        )
        self._last_publish_result = result
        return result

    async def aclose(self) -> None:
        """Stop the session, detach from the stream client and close owned clients."""
        await self.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for client in self._owned_clients:
            await client.aclose()
        self._owned_clients.clear()

    async def __aenter__(self) -> SessionOrchestrator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: BaseException | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _booking_id(self) -> str:
        if self._session is not None and self._session.handle is not None:
            return self._session.handle.booking_id
        return self.config.booking_id

    async def _teardown(self, session: SessionState) -> None:
        if session.auto_publish_timer is not None:
            session.auto_publish_timer.cancel()
            session.auto_publish_timer = None
        await _cancel_task(session.auto_publish_task)
        session.auto_publish_task = None
        await self.stream_client.disconnect(session.handle)
        session.auto_publish_scheduled = False

    def _arm_auto_publish(self, session: SessionState) -> None:
        if not self.auto_publish or session.auto_publish_scheduled:
            return
        session.auto_publish_scheduled = True
        loop = asyncio.get_running_loop()
        session.auto_publish_timer = loop.call_later(
            self.auto_publish_delay, self._fire_auto_publish, session
        )
        logger.info(
            "An event will be automatically published in %s seconds", self.auto_publish_delay
        )

    def _fire_auto_publish(self, session: SessionState) -> None:
        session.auto_publish_timer = None
        if session is not self._session:
            return
        session.auto_publish_task = asyncio.create_task(self._run_auto_publish(session))

    async def _run_auto_publish(self, session: SessionState) -> None:
        booking_id = session.handle.booking_id if session.handle else None
        result = await self.publish_client.publish(booking_id)
        self._last_publish_result = result
        if isinstance(result, PublishAck):
            logger.info("Automatic publish delivered %s", result.event_id)
        else:
            logger.warning("Automatic publish failed: %r", result)

    def _on_stream_status(self, handle: StreamHandle, status: ConnectionStatus) -> None:
        session = self._session
        # handle is still unset while connect() reports CONNECTING
        if session is None or (session.handle is not None and session.handle is not handle):
            return
        if status.is_connected:
            self._arm_auto_publish(session)
        self._set_status(status)

    def _on_stream_event(self, event: BookingEvent) -> None:
        if self._session is None:
            return
        self._events.append(event)
        for listener in list(self._event_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed", listener)

    def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        self._status = status
        logger.debug("Connection status: %s", status.label)
        for listener in list(self._status_listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener %r failed", listener)
