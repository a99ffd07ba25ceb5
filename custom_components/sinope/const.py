"""Constants used by the Sinopé integration.

This module defines a small set of constants used throughout the
integration.  Separating these values from the rest of the code makes it
easy to modify them in one place.
"""

from __future__ import annotations

from homeassistant.const import Platform

# The domain string must match the name of the directory in
# ``custom_components``.
DOMAIN: str = "sinope"

# Configuration keys exposed to the user via the config flow.  They match
# the keys expected by ``Endpoint.from_config``.
CONF_HOSTNAME: str = "hostname"
CONF_PORT: str = "port"
CONF_GATEWAY_ID: str = "gateway_id"
CONF_API_KEY: str = "api_key"
CONF_REFRESH: str = "refresh"
CONF_THERMOSTATS: str = "thermostats"
CONF_DIMMERS: str = "dimmers"

DEFAULT_PORT: int = 4550
# Seconds between two polls of the devices.
DEFAULT_REFRESH: int = 60
# Seconds after which a device search stops by itself.
SEARCH_TIME: int = 120

SERVICE_START_SEARCH: str = "start_search"
SERVICE_STOP_SEARCH: str = "stop_search"
EVENT_DEVICE_DISCOVERED: str = f"{DOMAIN}_device_discovered"
ATTR_DEVICE_ID: str = "device_id"
ATTR_DURATION: str = "duration"

PLATFORMS: list[Platform] = [Platform.CLIMATE, Platform.SENSOR, Platform.LIGHT]
