"""Configuration flow for the Sinopé integration.

This module implements the UI configuration flow used by Home Assistant
to set up a Sinopé GT125 gateway.  The flow prompts the user for the
gateway address and credentials (gateway id and API key, both printed
under the gateway), validates them and attempts a login.  An options
flow allows adjusting the polling interval and the list of paired
thermostats and dimmers after the initial setup.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.data_entry_flow import FlowResult

from .api import (
    CommunicationError,
    ConfigurationError,
    Endpoint,
    SinopeClient,
)
from .api.frame import DEVICE_ID_SIZE
from .const import (
    CONF_API_KEY,
    CONF_DIMMERS,
    CONF_GATEWAY_ID,
    CONF_HOSTNAME,
    CONF_PORT,
    CONF_REFRESH,
    CONF_THERMOSTATS,
    DEFAULT_PORT,
    DEFAULT_REFRESH,
    DOMAIN,
)
from .utils import format_hex_id, parse_hex_id

_LOGGER = logging.getLogger(__name__)


class InvalidAuth(Exception):
    """The gateway refused the gateway id / API key pair."""


async def _async_validate_input(hass: HomeAssistant, data: Dict[str, Any]) -> Endpoint:
    """Validate the user input allows us to log in to the gateway.

    The configuration is checked first, then a connection is opened and
    the login handshake performed.  The connection is closed right
    after.

    Raises
    ------
    ConfigurationError
        If a field is missing or malformed.
    CommunicationError
        If the gateway cannot be reached.
    InvalidAuth
        If the gateway refused the credentials.
    """
    endpoint = Endpoint.from_config(data)
    client = SinopeClient(endpoint)
    try:
        if not await client.ensure_connected():
            raise InvalidAuth
    finally:
        client.close()
    return endpoint


def parse_device_ids(value: str) -> list[str]:
    """Split a comma separated list of device ids.

    Returns the normalised ids (upper case hex, no separators).

    Raises
    ------
    ValueError
        On the first id that is not a valid 4-byte identifier.
    """
    device_ids: list[str] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        raw = parse_hex_id(part, DEVICE_ID_SIZE)
        if raw is None:
            raise ValueError(part)
        device_id = format_hex_id(raw)
        if device_id not in device_ids:
            device_ids.append(device_id)
    return device_ids


class SinopeConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Sinopé."""

    VERSION = 1

    def __init__(self) -> None:
        self._errors: Dict[str, str] = {}

    async def async_step_user(self, user_input: Dict[str, Any] | None = None) -> FlowResult:
        """Handle the initial step of the config flow."""
        self._errors.clear()
        if user_input is not None:
            try:
                endpoint = await _async_validate_input(self.hass, user_input)
            except ConfigurationError as err:
                _LOGGER.debug("Invalid Sinopé configuration: %s", err)
                self._errors[err.field] = f"invalid_{err.field}"
            except InvalidAuth:
                self._errors["base"] = "invalid_auth"
            except CommunicationError as err:
                _LOGGER.error("Error connecting to Sinopé gateway: %s", err)
                self._errors["base"] = "cannot_connect"
            if not self._errors:
                await self.async_set_unique_id(format_hex_id(endpoint.gateway_id))
                self._abort_if_unique_id_configured()
                return self.async_create_entry(
                    title=f"Sinopé {endpoint.hostname}",
                    data={
                        CONF_HOSTNAME: endpoint.hostname,
                        CONF_PORT: endpoint.port,
                        CONF_GATEWAY_ID: format_hex_id(endpoint.gateway_id),
                        CONF_API_KEY: format_hex_id(endpoint.api_key),
                    },
                )

        defaults = user_input or {}
        data_schema = vol.Schema(
            {
                vol.Required(CONF_HOSTNAME, default=defaults.get(CONF_HOSTNAME, "")): str,
                vol.Required(CONF_PORT, default=defaults.get(CONF_PORT, DEFAULT_PORT)): int,
                vol.Required(CONF_GATEWAY_ID, default=defaults.get(CONF_GATEWAY_ID, "")): str,
                vol.Required(CONF_API_KEY, default=defaults.get(CONF_API_KEY, "")): str,
            }
        )
        return self.async_show_form(
            step_id="user",
            data_schema=data_schema,
            errors=self._errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> "SinopeOptionsFlow":
        return SinopeOptionsFlow()


class SinopeOptionsFlow(config_entries.OptionsFlow):
    """Handle an options flow for Sinopé."""

    async def async_step_init(self, user_input: Dict[str, Any] | None = None) -> FlowResult:
        """Manage the polling interval and the paired devices.

        Device ids are typed as comma separated hexadecimal strings.
        Saving the options reloads the entry.
        """
        errors: Dict[str, str] = {}
        options = self.config_entry.options
        if user_input is not None:
            new_options: Dict[str, Any] = {CONF_REFRESH: user_input[CONF_REFRESH]}
            for key in (CONF_THERMOSTATS, CONF_DIMMERS):
                try:
                    new_options[key] = parse_device_ids(user_input.get(key, ""))
                except ValueError:
                    errors[key] = "invalid_device_id"
            if not errors:
                return self.async_create_entry(title="", data=new_options)

        defaults = user_input or {
            CONF_REFRESH: options.get(CONF_REFRESH, DEFAULT_REFRESH),
            CONF_THERMOSTATS: ", ".join(options.get(CONF_THERMOSTATS, [])),
            CONF_DIMMERS: ", ".join(options.get(CONF_DIMMERS, [])),
        }
        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_REFRESH, default=defaults[CONF_REFRESH]): vol.All(
                        vol.Coerce(int), vol.Range(min=1)
                    ),
                    vol.Optional(CONF_THERMOSTATS, default=defaults.get(CONF_THERMOSTATS, "")): str,
                    vol.Optional(CONF_DIMMERS, default=defaults.get(CONF_DIMMERS, "")): str,
                }
            ),
            errors=errors,
        )
