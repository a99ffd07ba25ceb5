"""Sensor platform for the Sinopé integration.

Each thermostat exposes its room temperature, the outdoor temperature
it displays and its heat level as separate sensors, so they can be
graphed and used in automations independently of the climate entity.
The values come from the central data coordinator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE, UnitOfTemperature
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .api import SinopeDevice, SinopeThermostat
from .api.appdata import HEAT_LEVEL, OUTDOOR_TEMPERATURE, ROOM_TEMPERATURE
from .const import DOMAIN
from .coordinator import SinopeDataUpdateCoordinator
from .entity import SinopeEntity

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class SinopeSensorEntityDescription(SensorEntityDescription):
    """Sensor description keyed by the data item it reads."""


THERMOSTAT_SENSORS: tuple[SinopeSensorEntityDescription, ...] = (
    SinopeSensorEntityDescription(
        key=ROOM_TEMPERATURE.key,
        translation_key=ROOM_TEMPERATURE.key,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
        icon="mdi:thermometer",
    ),
    SinopeSensorEntityDescription(
        key=OUTDOOR_TEMPERATURE.key,
        translation_key=OUTDOOR_TEMPERATURE.key,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
        icon="mdi:weather-partly-cloudy",
    ),
    SinopeSensorEntityDescription(
        key=HEAT_LEVEL.key,
        translation_key=HEAT_LEVEL.key,
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        icon="mdi:radiator",
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Sinopé sensors from a config entry."""
    coordinator: SinopeDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]["coordinator"]
    sensors: list[SinopeSensor] = []
    for device in coordinator.devices.values():
        if not isinstance(device, SinopeThermostat):
            continue
        for description in THERMOSTAT_SENSORS:
            sensors.append(SinopeSensor(coordinator, device, description))
    if not sensors:
        _LOGGER.debug("No thermostat configured, no sensor created")
        return
    async_add_entities(sensors)


class SinopeSensor(SinopeEntity, SensorEntity):
    """A single reading of a Sinopé device."""

    entity_description: SinopeSensorEntityDescription

    def __init__(
        self,
        coordinator: SinopeDataUpdateCoordinator,
        device: SinopeDevice,
        description: SinopeSensorEntityDescription,
    ) -> None:
        super().__init__(coordinator, device)
        self.entity_description = description
        self._attr_unique_id = f"{device.unique_id}_{description.key}"

    @property
    def native_value(self) -> Any:
        value = self._value(self.entity_description.key)
        if isinstance(value, float):
            return round(value, 2)
        return value
