"""Process-wide configuration for the booking SSE client.

Configuration is resolved once at startup with `ClientConfig.from_env` and then
passed to the clients; nothing re-reads the environment per call.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from . import constants
from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


class CredentialPlacement(str, Enum):
    """Where the API key travels on subscribe and publish requests."""

    QUERY = "query"
    HEADER = "header"


class TransportKind(str, Enum):
    """Stream decoding backend."""

    BYTE_STREAM = "byte_stream"
    EVENT_SOURCE = "event_source"


def _parse_enum(enum_type: type[Enum], raw: str, env_name: str) -> Any:
    try:
        return enum_type(raw.strip().lower())
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_type)
        raise ConfigurationError(
            f"Invalid {env_name}={raw!r}. Must be one of: {choices}"
        ) from exc


def _parse_seconds(raw: str, env_name: str, *, allow_zero: bool = True) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {env_name}={raw!r}. Must be a number") from exc
    if value < 0 or (value == 0 and not allow_zero):
        limit = "negative" if allow_zero else "zero or negative"
        raise ConfigurationError(f"Invalid {env_name}={raw!r}. Must not be {limit}")
    return value


@dataclass(frozen=True)
class ClientConfig:
    """Resolved client configuration.

    Attributes
    ----------
    base_url : str
        Scheme and host of the SSE service, without a trailing slash
    api_key : str | None
        Opaque credential; omitted from requests when ``None``
    booking_id : str
        Booking the subscription and publishes target by default
    credential_placement : CredentialPlacement
        Send the key as the ``k`` query parameter or the ``X-API-Key`` header
    transport : TransportKind
        Which stream decoding backend to use
    auto_publish_delay : float
        Seconds between the stream opening and the one-shot publish
    timeout : float
        Connect, write, and pool timeout in seconds
    debug : bool
        Whether debug logging was requested
    """

    base_url: str = constants.DEFAULT_SSE_BASE_URL
    api_key: str | None = field(default=None, repr=False)
    booking_id: str = constants.DEFAULT_BOOKING_ID
    credential_placement: CredentialPlacement = CredentialPlacement.QUERY
    transport: TransportKind = TransportKind.BYTE_STREAM
    auto_publish_delay: float = constants.AUTO_PUBLISH_DELAY_SECONDS
    timeout: float = constants.DEFAULT_TIMEOUT_SECONDS
    debug: bool = False

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigurationError("base_url must not be empty")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if self.auto_publish_delay < 0:
            raise ConfigurationError("auto_publish_delay must not be negative")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build configuration from environment variables.

        Parameters
        ----------
        environ : Mapping[str, str] | None
            Mapping to read from; defaults to ``os.environ``

        Returns
        -------
        ClientConfig
            Configuration with defaults for unset variables

        Raises
        ------
        ConfigurationError
            If a variable holds a value that cannot be parsed
        """
        env = os.environ if environ is None else environ

        placement = CredentialPlacement.QUERY
        if raw := env.get(constants.ENV_CREDENTIAL_PLACEMENT):
            placement = _parse_enum(CredentialPlacement, raw, constants.ENV_CREDENTIAL_PLACEMENT)

        transport = TransportKind.BYTE_STREAM
        if raw := env.get(constants.ENV_TRANSPORT):
            transport = _parse_enum(TransportKind, raw, constants.ENV_TRANSPORT)

        delay = constants.AUTO_PUBLISH_DELAY_SECONDS
        if raw := env.get(constants.ENV_AUTO_PUBLISH_DELAY):
            delay = _parse_seconds(raw, constants.ENV_AUTO_PUBLISH_DELAY)

        timeout = constants.DEFAULT_TIMEOUT_SECONDS
        if raw := env.get(constants.ENV_TIMEOUT):
            timeout = _parse_seconds(raw, constants.ENV_TIMEOUT, allow_zero=False)

        return cls(
            base_url=env.get(constants.ENV_BASE_URL) or constants.DEFAULT_SSE_BASE_URL,
            api_key=env.get(constants.ENV_API_KEY) or None,
            booking_id=env.get(constants.ENV_BOOKING_ID) or constants.DEFAULT_BOOKING_ID,
            credential_placement=placement,
            transport=transport,
            auto_publish_delay=delay,
            timeout=timeout,
            debug=env.get(constants.ENV_DEBUG, "").lower() in constants.TRUTHY_VALUES,
        )

    def with_overrides(self, **changes: Any) -> ClientConfig:
        """Return a copy with the given non-``None`` fields replaced."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})

    def credential_params(self) -> dict[str, str]:
        """Query parameters carrying the credential, if any."""
        if self.api_key and self.credential_placement is CredentialPlacement.QUERY:
            return {constants.API_KEY_QUERY_PARAM: self.api_key}
        return {}

    def credential_headers(self) -> dict[str, str]:
        """Headers carrying the credential, if any."""
        if self.api_key and self.credential_placement is CredentialPlacement.HEADER:
            return {constants.API_KEY_HEADER: self.api_key}
        return {}

    def subscribe_url(self, booking_id: str | None = None) -> str:
        """Absolute subscribe URL for a booking."""
        path = constants.SUBSCRIBE_PATH_TEMPLATE.format(booking_id=booking_id or self.booking_id)
        return f"{self.base_url}{path}"

    def publish_url(self, booking_id: str | None = None) -> str:
        """Absolute publish URL for a booking."""
        path = constants.PUBLISH_PATH_TEMPLATE.format(booking_id=booking_id or self.booking_id)
        return f"{self.base_url}{path}"


def configure_logging(config: ClientConfig) -> None:
    """Enable debug logging when the configuration asks for it."""
    if config.debug:
        logging.basicConfig(level=logging.DEBUG)
        logger.debug("%s enabled; debug logging active.", constants.ENV_DEBUG)
