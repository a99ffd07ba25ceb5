"""Base entity shared by the Sinopé platforms."""

from __future__ import annotations

from typing import Any

from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .api import SinopeDevice
from .const import DOMAIN
from .coordinator import SinopeDataUpdateCoordinator
from .utils import format_hex_id


class SinopeEntity(CoordinatorEntity[SinopeDataUpdateCoordinator]):
    """An entity bound to one device of the gateway.

    Values are read from ``coordinator.data[device.unique_id]``; the
    entity is unavailable while the gateway is offline.
    """

    _attr_has_entity_name = True

    def __init__(self, coordinator: SinopeDataUpdateCoordinator, device: SinopeDevice) -> None:
        super().__init__(coordinator)
        self.device = device
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, device.unique_id)},
            name=device.name,
            manufacturer="Sinopé Technologies",
            via_device=(DOMAIN, format_hex_id(coordinator.gateway.endpoint.gateway_id)),
        )

    @property
    def available(self) -> bool:
        return super().available and self.device.status.online

    def _value(self, key: str) -> Any:
        data = self.coordinator.data or {}
        return data.get(self.device.unique_id, {}).get(key)
