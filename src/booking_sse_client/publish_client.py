"""Publish test booking updates into the event stream.

`PublishClient.publish` sends one ``POST {base}/api/sse/events/bookings/{id}/updated``
and always returns a value: a `PublishAck` on a 2xx response, otherwise a
`PublishError` describing the rejected status or the transport failure.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import httpx

from . import constants
from .config import ClientConfig
from .exceptions import PublishError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

# Shared by every client in the process so ids never repeat within the same millisecond.
_id_sequence = itertools.count(1)


@dataclass(frozen=True)
class PublishAck:
    """Successful publish.

    Attributes
    ----------
    status_code : int
        HTTP status returned by the server
    body : Any
        Decoded JSON acknowledgement, or the raw text when it is not JSON
    event_id : str
        ``event_id`` sent in the request body
    transaction_id : str
        ``transaction_id`` sent in the request body
    """

    status_code: int
    body: Any
    event_id: str
    transaction_id: str


PublishResult = PublishAck | PublishError


def _utc_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def generate_ids(now: datetime | None = None) -> tuple[str, str]:
    """Return a fresh ``(event_id, transaction_id)`` pair.

    Ids combine the millisecond timestamp with a process-wide sequence number,
    so two calls never produce the same id even within one millisecond.
    """
    moment = now or datetime.now(timezone.utc)
    millis = int(moment.timestamp()) * 1000 + moment.microsecond // 1000
    sequence = next(_id_sequence)
    return (
        f"{constants.EVENT_ID_PREFIX}-{millis}-{sequence}",
        f"{constants.TRANSACTION_ID_PREFIX}-{millis}-{sequence}",
    )


def build_publish_payload(
    *,
    user_id: str = constants.DEFAULT_PUBLISH_USER_ID,
    source: str = constants.DEFAULT_PUBLISH_SOURCE,
    metadata: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the JSON body for a booking-updated publish.

    Parameters
    ----------
    user_id : str
        User recorded as the author of the update
    source : str
        Provenance written to ``metadata.source``
    metadata : Mapping[str, Any] | None
        Extra metadata merged over the provenance fields
    now : datetime | None
        Call time; defaults to the current UTC time

    Returns
    -------
    dict[str, Any]
        Body with ``event_id``, ``transaction_id``, ``updated_at``, ``user_id``
        and ``metadata``
    """
    moment = now or datetime.now(timezone.utc)
    event_id, transaction_id = generate_ids(moment)
    timestamp = _utc_iso(moment)
    return {
        "event_id": event_id,
        "transaction_id": transaction_id,
        "updated_at": timestamp,
        "user_id": user_id,
        "metadata": {"source": source, "triggered_at": timestamp, **(metadata or {})},
    }


class PublishClient:
    """Fire single booking-updated publishes.

    Parameters
    ----------
    config : ClientConfig | None
        Resolved configuration; read from the environment when omitted
    http_client : httpx.AsyncClient | None
        Client to use; one is created (and owned) when omitted
    user_id : str
        Default ``user_id`` for published events
    source : str
        Default ``metadata.source`` for published events
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        user_id: str = constants.DEFAULT_PUBLISH_USER_ID,
        source: str = constants.DEFAULT_PUBLISH_SOURCE,
    ) -> None:
        self.config = config or ClientConfig.from_env()
        self.user_id = user_id
        self.source = source
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=self.config.timeout)

    async def publish(
        self,
        booking_id: str | None = None,
        *,
        user_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> PublishResult:
        """Ask the server to emit a booking-updated event.

        Parameters
        ----------
        booking_id : str | None
            Target booking; defaults to ``config.booking_id``
        user_id : str | None
            Overrides the client's default ``user_id``
        metadata : Mapping[str, Any] | None
            Extra metadata merged into the body

        Returns
        -------
        PublishAck | PublishError
            Acknowledgement on a 2xx response, error value otherwise
        """
        url = self.config.publish_url(booking_id)
        payload = build_publish_payload(
            user_id=user_id or self.user_id, source=self.source, metadata=metadata
        )

        try:
            response = await self._http_client.post(
                url,
                json=payload,
                params=self.config.credential_params(),
                headers=self.config.credential_headers(),
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("Error publishing event %s: %r", payload["event_id"], exc)
            return PublishError(f"Publish request to {url} failed: {exc!r}", cause=exc)

        if not response.is_success:
            logger.error("Failed to publish event: %s %s", response.status_code, response.text)
            return PublishError(
                f"Publish returned {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        logger.info("Event %s published successfully: %s", payload["event_id"], body)
        return PublishAck(
            status_code=response.status_code,
            body=body,
            event_id=payload["event_id"],
            transaction_id=payload["transaction_id"],
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> PublishClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: BaseException | None,
    ) -> None:
        await self.aclose()
