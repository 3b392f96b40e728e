"""Custom exceptions for the booking SSE client.

This module defines the error taxonomy for subscribing to and publishing into
the booking event stream. Transport and decode failures are caught inside the
client and surfaced as connection status; publish failures are returned to the
caller as values. None of them is meant to escape the package as an unhandled
fault.

Exception Hierarchy
-------------------
- **BookingSSEError**: Base exception for all client errors
  - **ConfigurationError**: Invalid environment or constructor configuration
  - **TransportError**: Base for stream transport failures
    - **TransportOpenError**: Connection refused, unreachable, or non-2xx open
    - **TransportStreamError**: Failure after the stream was opened
  - **FrameDecodeError**: A single frame could not be decoded
  - **PublishError**: A publish request failed (returned, not raised)

Error Categories
----------------
- **Open failures**: not retried here, surfaced as a non-retryable status
- **Stream failures**: surfaced as a retryable status, no automatic reconnect
- **Decode failures**: recovered locally, the frame is dropped
- **Publish failures**: reported to the caller, session state is untouched
"""

from __future__ import annotations

from typing import Any


class BookingSSEError(Exception):
    """Base exception for booking SSE client errors."""


class ConfigurationError(BookingSSEError):
    """Raised when configuration values cannot be parsed."""


class TransportError(BookingSSEError):
    """Base class for stream transport failures."""


class TransportOpenError(TransportError):
    """Raised when the event stream cannot be opened."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportStreamError(TransportError):
    """Raised when an open event stream fails mid-read."""


class FrameDecodeError(BookingSSEError):
    """Raised when a frame payload is not a valid booking event."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class PublishError(BookingSSEError):
    """Failure of a single publish request.

    Returned by `PublishClient.publish` rather than raised. Exactly one of
    ``status_code`` (the server answered with a non-2xx status) or ``cause``
    (no response was received) is set.

    Attributes
    ----------
    status_code : int | None
        HTTP status of the rejected request
    body : Any
        Response body text of the rejected request
    cause : BaseException | None
        Underlying transport exception when no response arrived
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.cause = cause

    def __repr__(self) -> str:
        return (
            f"PublishError(status_code={self.status_code!r}, body={self.body!r}, "
            f"cause={self.cause!r})"
        )
