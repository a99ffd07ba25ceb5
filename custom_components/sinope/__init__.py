"""Home Assistant integration for Sinopé GT125 gateways.

This module contains the entry points required by Home Assistant to set
up and tear down the integration.  Each config entry is one gateway:
setup validates the configuration, builds a
:class:`~custom_components.sinope.api.SinopeGateway` with one device
adapter per configured thermostat and dimmer, wraps it in a
:class:`~custom_components.sinope.coordinator.SinopeDataUpdateCoordinator`
and starts polling.  The TCP connection itself is opened lazily by the
first poll.

Two services drive the pairing of new devices: ``sinope.start_search``
puts every loaded gateway in search mode (polling is suspended) and
``sinope.stop_search`` ends it.  A search also stops by itself after
:data:`~custom_components.sinope.const.SEARCH_TIME` seconds.  Each device
id reported during a search fires a ``sinope_device_discovered`` event;
new ids are added to the thermostats of the entry when the search ends.
"""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import ConfigEntryError
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers import device_registry as dr
from homeassistant.helpers.event import async_call_later

from .api import ConfigurationError, SinopeDimmer, SinopeGateway, SinopeThermostat
from .const import (
    ATTR_DEVICE_ID,
    ATTR_DURATION,
    CONF_DIMMERS,
    CONF_REFRESH,
    CONF_THERMOSTATS,
    DEFAULT_REFRESH,
    DOMAIN,
    EVENT_DEVICE_DISCOVERED,
    PLATFORMS,
    SEARCH_TIME,
    SERVICE_START_SEARCH,
    SERVICE_STOP_SEARCH,
)
from .coordinator import SinopeDataUpdateCoordinator
from .utils import format_hex_id

_LOGGER = logging.getLogger(__name__)

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

START_SEARCH_SCHEMA = vol.Schema(
    {vol.Optional(ATTR_DURATION, default=SEARCH_TIME): vol.All(vol.Coerce(int), vol.Range(min=1))}
)


async def async_setup(hass: HomeAssistant, config: dict[str, Any]) -> bool:
    """Set up the Sinopé component.

    The integration is configured through the UI only; YAML is ignored.
    """
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up one Sinopé gateway from a config entry.

    A configuration error is reported through the entry state and aborts
    the setup before any connection attempt.
    """
    hass.data.setdefault(DOMAIN, {})

    config = {**entry.data, CONF_REFRESH: entry.options.get(CONF_REFRESH, DEFAULT_REFRESH)}
    try:
        gateway = SinopeGateway.from_config(config)
    except ConfigurationError as err:
        _LOGGER.error("Invalid Sinopé configuration (%s): %s", err.field, err)
        raise ConfigEntryError(f"Invalid configuration: {err}") from err

    _LOGGER.debug(
        "Setting up Sinopé entry %s for %s:%s",
        entry.entry_id,
        gateway.endpoint.hostname,
        gateway.endpoint.port,
    )

    coordinator = SinopeDataUpdateCoordinator(hass, entry, gateway)
    _add_devices(coordinator, SinopeThermostat, entry.options.get(CONF_THERMOSTATS, []))
    _add_devices(coordinator, SinopeDimmer, entry.options.get(CONF_DIMMERS, []))

    device_registry = dr.async_get(hass)
    device_registry.async_get_or_create(
        config_entry_id=entry.entry_id,
        identifiers={(DOMAIN, format_hex_id(gateway.endpoint.gateway_id))},
        manufacturer="Sinopé Technologies",
        model="GT125",
        name=f"Sinopé gateway {gateway.endpoint.hostname}",
    )

    hass.data[DOMAIN][entry.entry_id] = {
        "gateway": gateway,
        "coordinator": coordinator,
        "discovered": set(),
        "cancel_search": None,
    }

    gateway.start()

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    _async_register_services(hass)

    # Reload the entry when options change (refresh interval, devices).
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    return True


def _add_devices(
    coordinator: SinopeDataUpdateCoordinator, device_cls: type, device_ids: list[str]
) -> None:
    for device_id in device_ids:
        try:
            device = device_cls(coordinator.gateway, device_id)
        except ConfigurationError as err:
            _LOGGER.warning("Skipping device: %s", err)
            continue
        coordinator.add_device(device)


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry after its options were changed."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry.

    Platforms are unloaded first, then any running search is abandoned,
    polling is stopped and the connection closed.
    """
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        data = hass.data[DOMAIN].pop(entry.entry_id, {})
        cancel = data.get("cancel_search")
        if cancel is not None:
            cancel()
        gateway: SinopeGateway | None = data.get("gateway")
        if gateway is not None:
            gateway.stop()
        if not hass.data[DOMAIN]:
            hass.services.async_remove(DOMAIN, SERVICE_START_SEARCH)
            hass.services.async_remove(DOMAIN, SERVICE_STOP_SEARCH)
    return unload_ok


# ---------------------------------------------------------------------------
# Device search
# ---------------------------------------------------------------------------


@callback
def _async_register_services(hass: HomeAssistant) -> None:
    if hass.services.has_service(DOMAIN, SERVICE_START_SEARCH):
        return

    async def _start_search(call: ServiceCall) -> None:
        for entry_id in list(hass.data.get(DOMAIN, {})):
            _async_start_search(hass, entry_id, call.data[ATTR_DURATION])

    async def _stop_search(call: ServiceCall) -> None:
        for entry_id in list(hass.data.get(DOMAIN, {})):
            _async_stop_search(hass, entry_id)

    hass.services.async_register(
        DOMAIN, SERVICE_START_SEARCH, _start_search, schema=START_SEARCH_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_STOP_SEARCH, _stop_search, schema=vol.Schema({})
    )


@callback
def _async_start_search(hass: HomeAssistant, entry_id: str, duration: int) -> None:
    data = hass.data[DOMAIN][entry_id]
    gateway: SinopeGateway = data["gateway"]
    if gateway.discovery.searching:
        _LOGGER.debug("Gateway %s is already searching", gateway.endpoint.hostname)
        return

    discovered: set[str] = data["discovered"]

    @callback
    def _sink(device_id: bytes) -> None:
        unique_id = format_hex_id(device_id)
        _LOGGER.info("Discovered Sinopé device %s", unique_id)
        discovered.add(unique_id)
        hass.bus.async_fire(
            EVENT_DEVICE_DISCOVERED,
            {ATTR_DEVICE_ID: unique_id, "gateway": gateway.endpoint.hostname},
        )

    @callback
    def _timeout(_now: Any) -> None:
        data["cancel_search"] = None
        _async_stop_search(hass, entry_id)

    _LOGGER.info("Searching for Sinopé devices on %s for %s s", gateway.endpoint.hostname, duration)
    gateway.start_search(_sink)
    data["cancel_search"] = async_call_later(hass, duration, _timeout)


@callback
def _async_stop_search(hass: HomeAssistant, entry_id: str) -> None:
    data = hass.data[DOMAIN].get(entry_id)
    if data is None:
        return
    cancel = data.get("cancel_search")
    if cancel is not None:
        cancel()
        data["cancel_search"] = None
    gateway: SinopeGateway = data["gateway"]
    gateway.stop_search()

    entry = hass.config_entries.async_get_entry(entry_id)
    discovered: set[str] = data["discovered"]
    if entry is None or not discovered:
        return
    known = set(entry.options.get(CONF_THERMOSTATS, [])) | set(entry.options.get(CONF_DIMMERS, []))
    new_ids = sorted(discovered - known)
    discovered.clear()
    if not new_ids:
        return
    _LOGGER.info("Adding discovered devices %s to %s", ", ".join(new_ids), entry.title)
    hass.config_entries.async_update_entry(
        entry,
        options={
            **entry.options,
            CONF_THERMOSTATS: [*entry.options.get(CONF_THERMOSTATS, []), *new_ids],
        },
    )
