"""Typed records for booking events and connection status."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import FrameDecodeError

if TYPE_CHECKING:
    from collections.abc import Mapping

_REQUIRED_FIELDS = ("event_class", "event_id", "booking_id", "updated_at")
_OPTIONAL_FIELDS = ("transaction_id", "user_id")


@dataclass(frozen=True)
class BookingEvent:
    """One booking update decoded from a stream frame.

    Attributes
    ----------
    event_class : str
        Discriminator such as ``BOOKING_UPDATED``
    event_id : str
        Identifier of this emission
    booking_id : str
        Booking the event belongs to
    updated_at : str
        ISO-8601 timestamp as sent by the server
    transaction_id : str | None
        Transaction that caused the update, when known
    user_id : str | None
        User that caused the update, when known
    metadata : dict[str, Any]
        Free-form JSON-compatible metadata
    """

    event_class: str
    event_id: str
    booking_id: str
    updated_at: str
    transaction_id: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> BookingEvent:
        """Build an event from a decoded JSON object.

        Parameters
        ----------
        payload : Mapping[str, Any]
            Decoded frame payload

        Returns
        -------
        BookingEvent
            The typed event

        Raises
        ------
        FrameDecodeError
            If a required field is missing or a field has the wrong type
        """
        missing = [name for name in _REQUIRED_FIELDS if not isinstance(payload.get(name), str)]
        if missing:
            raise FrameDecodeError(f"Booking event is missing fields: {', '.join(missing)}")

        optional: dict[str, str | None] = {}
        for name in _OPTIONAL_FIELDS:
            value = payload.get(name)
            if value is not None and not isinstance(value, str):
                raise FrameDecodeError(f"Booking event field {name!r} must be a string")
            optional[name] = value

        metadata = payload.get("metadata")
        if metadata is None:
            metadata = {}
        elif not isinstance(metadata, dict):
            raise FrameDecodeError("Booking event field 'metadata' must be an object")

        return cls(
            event_class=payload["event_class"],
            event_id=payload["event_id"],
            booking_id=payload["booking_id"],
            updated_at=payload["updated_at"],
            metadata=dict(metadata),
            **optional,
        )

    @property
    def updated_at_datetime(self) -> datetime | None:
        """Parsed ``updated_at``; ``None`` when the server sent something unparsable."""
        value = self.updated_at
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None

    def to_dict(self) -> dict[str, Any]:
        """Wire representation, omitting unset optional fields."""
        data: dict[str, Any] = {
            "event_class": self.event_class,
            "event_id": self.event_id,
            "booking_id": self.booking_id,
            "updated_at": self.updated_at,
            "metadata": dict(self.metadata),
        }
        if self.transaction_id is not None:
            data["transaction_id"] = self.transaction_id
        if self.user_id is not None:
            data["user_id"] = self.user_id
        return data


class ConnectionState(str, Enum):
    """Coarse connection state of a stream subscription."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERRORED = "errored"


@dataclass(frozen=True)
class ConnectionStatus:
    """Connection state plus the details a presentation layer shows.

    ``retryable`` is only meaningful for ``ERRORED``: ``True`` when the stream
    failed after opening, ``False`` when it could not be opened at all.
    """

    state: ConnectionState
    retryable: bool = False
    detail: str | None = None

    @classmethod
    def disconnected(cls) -> ConnectionStatus:
        return cls(ConnectionState.DISCONNECTED)

    @classmethod
    def connecting(cls) -> ConnectionStatus:
        return cls(ConnectionState.CONNECTING)

    @classmethod
    def connected(cls) -> ConnectionStatus:
        return cls(ConnectionState.CONNECTED)

    @classmethod
    def errored(cls, *, retryable: bool, detail: str | None = None) -> ConnectionStatus:
        return cls(ConnectionState.ERRORED, retryable=retryable, detail=detail)

    @classmethod
    def closed(cls) -> ConnectionStatus:
        """The server ended the stream."""
        return cls(ConnectionState.DISCONNECTED, detail="Connection closed")

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def label(self) -> str:
        if self.state is ConnectionState.CONNECTING:
            return "Connecting..."
        if self.state is ConnectionState.CONNECTED:
            return "Connected"
        if self.state is ConnectionState.ERRORED:
            return "Connection error (will retry)" if self.retryable else "Connection failed"
        return self.detail or "Disconnected"
