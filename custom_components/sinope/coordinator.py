"""Data update coordinator for the Sinopé integration.

The coordinator wraps one :class:`~custom_components.sinope.api.SinopeGateway`.
Polling is driven by the gateway's own scheduler rather than by the
coordinator's interval: the scheduler has to be suspended while a
device search holds the connection and paused around writes, so the
coordinator is created without ``update_interval`` and the gateway
pushes fresh data after every successful read cycle.

``coordinator.data`` maps each device unique id (the hex device id) to
the decoded state of the device, e.g.
``{"00000FB1": {"room_temperature": 21.5, ...}}``.  Entities in this
integration inherit from
:class:`homeassistant.helpers.update_coordinator.CoordinatorEntity`
and read their values from there.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.update_coordinator import (
    DataUpdateCoordinator,
    UpdateFailed,
)

from .api import SinopeDevice, SinopeError, SinopeGateway, StatusInfo
from .const import DOMAIN

_LOGGER = logging.getLogger(__name__)


class SinopeDataUpdateCoordinator(DataUpdateCoordinator[Dict[str, Dict[str, Any]]]):
    """Class to publish the state of the devices of a single gateway."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry, gateway: SinopeGateway) -> None:
        self.gateway = gateway
        self.devices: dict[str, SinopeDevice] = {}
        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=f"{DOMAIN} {gateway.endpoint.hostname}",
            update_interval=None,
        )
        gateway.on_status = self._handle_status
        gateway.on_cycle_complete = self._handle_cycle_complete

    def add_device(self, device: SinopeDevice) -> None:
        """Track ``device`` and subscribe it to polling."""
        self.devices[device.unique_id] = device
        self.gateway.register(device)

    def remove_device(self, device: SinopeDevice) -> None:
        self.devices.pop(device.unique_id, None)
        self.gateway.unregister(device)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {unique_id: dict(device.state) for unique_id, device in self.devices.items()}

    async def _async_update_data(self) -> Dict[str, Dict[str, Any]]:
        """Run a read cycle right away.

        Only used for the first refresh and for explicit refresh
        requests; the periodic cycles are run by the gateway scheduler.
        """
        try:
            await self.gateway.scheduler.refresh_all()
        except SinopeError as err:
            raise UpdateFailed(f"Error fetching Sinopé data: {err}") from err
        return self.snapshot()

    @callback
    def _handle_cycle_complete(self) -> None:
        self.async_set_updated_data(self.snapshot())

    @callback
    def _handle_status(self, status: StatusInfo) -> None:
        if status.online:
            return
        self.async_set_update_error(
            UpdateFailed(f"Gateway offline ({status.detail.value}): {status.message}")
        )
