"""Command-line front end for the booking SSE client.

Subscribes to a booking's event stream and prints every received event and
status change, or sends a single manual publish with ``--publish``.

Examples
--------
Watch ``booking-123`` for a minute without the automatic publish::

    booking-sse-client --booking-id booking-123 --duration 60 --no-auto-publish

Send one test event through the header credential convention::

    API_KEY=secret booking-sse-client --publish --credential-placement header
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING

from ._version import __version__
from .config import ClientConfig, CredentialPlacement, TransportKind, configure_logging
from .exceptions import ConfigurationError, PublishError
from .orchestrator import SessionOrchestrator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import BookingEvent, ConnectionStatus

logger = logging.getLogger(__name__)


def format_event(event: BookingEvent) -> str:
    """Render an event as a short multi-line block."""
    lines = [f"[{event.event_class}] {event.event_id}", f"  Booking: {event.booking_id}"]
    if event.transaction_id:
        lines.append(f"  Transaction: {event.transaction_id}")
    parsed = event.updated_at_datetime
    updated_at = parsed.astimezone().strftime("%c") if parsed else event.updated_at
    lines.append(f"  Updated At: {updated_at}")
    if event.user_id:
        lines.append(f"  User: {event.user_id}")
    if event.metadata:
        lines.append("  Metadata:")
        lines.extend(f"    {line}" for line in json.dumps(event.metadata, indent=2).splitlines())
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="booking-sse-client",
        description="Subscribe to booking update events over server-sent events.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--base-url", help="SSE service base URL (env: SSE_BASE_URL)")
    parser.add_argument("--booking-id", help="booking to subscribe to (env: SSE_BOOKING_ID)")
    parser.add_argument(
        "--transport",
        choices=[kind.value for kind in TransportKind],
        help="stream decoding backend (env: SSE_TRANSPORT)",
    )
    parser.add_argument(
        "--credential-placement",
        choices=[placement.value for placement in CredentialPlacement],
        help="send the API key as a query parameter or header (env: SSE_CREDENTIAL_PLACEMENT)",
    )
    parser.add_argument(
        "--auto-publish-delay",
        type=float,
        help="seconds before the automatic publish (env: SSE_AUTO_PUBLISH_DELAY)",
    )
    parser.add_argument(
        "--no-auto-publish", action="store_true", help="do not publish automatically"
    )
    parser.add_argument(
        "--duration", type=float, help="stop after this many seconds (default: run until Ctrl-C)"
    )
    parser.add_argument(
        "--publish", action="store_true", help="send one manual publish and exit"
    )
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    return parser


def _print_status(status: ConnectionStatus) -> None:
    suffix = f" ({status.detail})" if status.detail and status.label != status.detail else ""
    print(f"Status: {status.label}{suffix}", flush=True)


def _print_event(event: BookingEvent) -> None:
    print(format_event(event), flush=True)


async def _publish_once(session: SessionOrchestrator) -> int:
    result = await session.publish_now()
    if isinstance(result, PublishError):
        print(f"Failed to publish event: {result}", file=sys.stderr)
        if result.body:
            print(result.body, file=sys.stderr)
        return 1
    print(f"Event published successfully: {json.dumps(result.body)}")
    return 0


async def _watch(session: SessionOrchestrator, duration: float | None) -> int:
    session.on_status(_print_status)
    session.on_event(_print_event)
    handle = await session.start()
    print(f"Booking ID: {handle.booking_id}", flush=True)
    if session.auto_publish:
        print(
            f"An event will be automatically published {session.auto_publish_delay:g}s "
            "after connecting.",
            flush=True,
        )

    if duration is None:
        await asyncio.Event().wait()
    else:
        await asyncio.sleep(duration)
    print(f"Received Events ({len(session.received_events)})")
    return 0


async def run(
    config: ClientConfig, *, publish: bool, auto_publish: bool, duration: float | None
) -> int:
    """Run the CLI workflow; the session is torn down on every exit path."""
    async with SessionOrchestrator(config, auto_publish=auto_publish) as session:
        if publish:
            return await _publish_once(session)
        return await _watch(session, duration)


def main(argv: Sequence[str] | None = None) -> int:
    """Console script entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = ClientConfig.from_env().with_overrides(
            base_url=args.base_url,
            booking_id=args.booking_id,
            transport=TransportKind(args.transport) if args.transport else None,
            credential_placement=(
                CredentialPlacement(args.credential_placement)
                if args.credential_placement
                else None
            ),
            auto_publish_delay=args.auto_publish_delay,
            debug=True if args.debug else None,
        )
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    configure_logging(config)
    logger.debug("Resolved configuration: %r", config)

    try:
        return asyncio.run(
            run(
                config,
                publish=args.publish,
                auto_publish=not args.no_auto_publish,
                duration=args.duration,
            )
        )
    except KeyboardInterrupt:
        print("Disconnected")
        return 130


if __name__ == "__main__":
    sys.exit(main())
