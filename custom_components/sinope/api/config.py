"""Gateway endpoint configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from ..utils import parse_hex_id
from .exceptions import ConfigurationError
from .frame import API_KEY_SIZE, GATEWAY_ID_SIZE

DEFAULT_PORT = 4550
DEFAULT_REFRESH_INTERVAL = 60


@dataclass(frozen=True)
class Endpoint:
    """Network address and credentials of one gateway."""

    hostname: str
    port: int
    gateway_id: bytes
    api_key: bytes
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> Endpoint:
        """Validate a raw configuration mapping.

        The mapping uses the keys ``hostname``, ``port``, ``gateway_id``,
        ``api_key`` and, optionally, ``refresh``.

        Raises
        ------
        ConfigurationError
            On the first missing or malformed field.
        """
        hostname = config.get("hostname")
        if not hostname:
            raise ConfigurationError("hostname", "Gateway hostname must be set")

        port = config.get("port")
        if port is None or port == "":
            raise ConfigurationError("port", "Gateway port must be set")
        try:
            port = int(port)
        except (TypeError, ValueError) as err:
            raise ConfigurationError("port", f"Invalid gateway port: {port!r}") from err
        if not 0 < port < 65536:
            raise ConfigurationError("port", f"Invalid gateway port: {port}")

        gateway_id = parse_hex_id(config.get("gateway_id"), GATEWAY_ID_SIZE)
        if gateway_id is None:
            raise ConfigurationError("gateway_id", "Gateway Id must be set")

        api_key = parse_hex_id(config.get("api_key"), API_KEY_SIZE)
        if api_key is None:
            raise ConfigurationError("api_key", "Api Key must be set")

        refresh = config.get("refresh")
        if refresh is None:
            refresh = DEFAULT_REFRESH_INTERVAL
        try:
            refresh = int(refresh)
        except (TypeError, ValueError) as err:
            raise ConfigurationError("refresh", f"Invalid refresh interval: {refresh!r}") from err
        if refresh < 1:
            raise ConfigurationError("refresh", "Refresh interval must be at least 1 second")

        return cls(str(hostname), port, gateway_id, api_key, refresh)
