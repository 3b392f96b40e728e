"""Constants for the booking SSE client.

This module holds the default configuration values, endpoint templates, header
names, and wire-level literals used across the package. Values that can be
overridden at startup are read by `config.ClientConfig.from_env`; the names of
the environment variables live here so they are documented in one place.

Configuration Categories
------------------------
1. **Endpoints**: Base URL and the subscribe/publish path templates
2. **Credentials**: Query parameter and header names for the API key
3. **Wire Format**: Frame prefix, handshake type, and event channel names
4. **Publishing**: Auto-publish delay and default publish metadata
5. **Environment**: Variable names read by the configuration layer

API Configuration
-----------------
- **Base URL**: ``http://localhost:8081`` (configurable via SSE_BASE_URL)
- **Subscribe**: ``/api/sse/subscribe/bookings/{booking_id}``
- **Publish**: ``/api/sse/events/bookings/{booking_id}/updated``
- **Credential**: query parameter ``k`` or header ``X-API-Key``

Examples
--------
>>> from booking_sse_client import constants
>>> constants.SUBSCRIBE_PATH_TEMPLATE.format(booking_id="booking-123")
'/api/sse/subscribe/bookings/booking-123'
>>> constants.AUTO_PUBLISH_DELAY_SECONDS
10.0

See Also
--------
- `config`: Resolves these defaults against the process environment
- `stream_client`: Uses the subscribe template and wire literals
- `publish_client`: Uses the publish template and metadata defaults
"""

from __future__ import annotations

from typing import Final

# Endpoints
DEFAULT_SSE_BASE_URL: Final = "http://localhost:8081"
DEFAULT_BOOKING_ID: Final = "booking-123"
SUBSCRIBE_PATH_TEMPLATE: Final = "/api/sse/subscribe/bookings/{booking_id}"
PUBLISH_PATH_TEMPLATE: Final = "/api/sse/events/bookings/{booking_id}/updated"

# Credentials
API_KEY_QUERY_PARAM: Final = "k"
API_KEY_HEADER: Final = "X-API-Key"

# Wire format
EVENT_STREAM_CONTENT_TYPE: Final = "text/event-stream"
DATA_PREFIX: Final = "data: "
HANDSHAKE_TYPE: Final = "connected"
DEFAULT_EVENT_CHANNEL: Final = "message"
BOOKING_UPDATED_CHANNEL: Final = "BOOKING_UPDATED"
BOOKING_EVENT_CHANNELS: Final = frozenset({DEFAULT_EVENT_CHANNEL, BOOKING_UPDATED_CHANNEL})

# Publishing
AUTO_PUBLISH_DELAY_SECONDS: Final = 10.0
DEFAULT_PUBLISH_USER_ID: Final = "user-789"
DEFAULT_PUBLISH_SOURCE: Final = "python-client"
EVENT_ID_PREFIX: Final = "evt"
TRANSACTION_ID_PREFIX: Final = "txn"

# HTTP
DEFAULT_TIMEOUT_SECONDS: Final = 30.0

# Environment variable names
ENV_BASE_URL: Final = "SSE_BASE_URL"
ENV_API_KEY: Final = "API_KEY"
ENV_BOOKING_ID: Final = "SSE_BOOKING_ID"
ENV_CREDENTIAL_PLACEMENT: Final = "SSE_CREDENTIAL_PLACEMENT"
ENV_TRANSPORT: Final = "SSE_TRANSPORT"
ENV_AUTO_PUBLISH_DELAY: Final = "SSE_AUTO_PUBLISH_DELAY"
ENV_TIMEOUT: Final = "SSE_TIMEOUT"
ENV_DEBUG: Final = "SSE_DEBUG"

TRUTHY_VALUES: Final = frozenset({"1", "true", "yes", "on", "debug"})
