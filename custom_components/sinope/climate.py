"""Climate platform: one entity per Sinopé thermostat."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.climate import ClimateEntity
from homeassistant.components.climate.const import (
    PRESET_AWAY,
    PRESET_NONE,
    ClimateEntityFeature,
    HVACAction,
    HVACMode,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import ATTR_TEMPERATURE, UnitOfTemperature
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .api import SinopeError, SinopeThermostat
from .api.appdata import HEAT_LEVEL, ROOM_TEMPERATURE, SETPOINT_MODE, SETPOINT_TEMPERATURE
from .const import DOMAIN
from .coordinator import SinopeDataUpdateCoordinator
from .entity import SinopeEntity
from .mappings import (
    PRESET_FROST_PROTECTION,
    hvac_to_mode,
    mode_to_hvac,
    mode_to_preset,
    preset_to_mode,
)

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up one climate entity per configured thermostat."""
    coordinator: SinopeDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]["coordinator"]
    entities = [
        SinopeClimate(coordinator, device)
        for device in coordinator.devices.values()
        if isinstance(device, SinopeThermostat)
    ]
    async_add_entities(entities)


class SinopeClimate(SinopeEntity, ClimateEntity):
    """Sinopé baseboard thermostat."""

    _attr_name = None
    _attr_temperature_unit = UnitOfTemperature.CELSIUS
    _attr_supported_features = (
        ClimateEntityFeature.TARGET_TEMPERATURE
        | ClimateEntityFeature.PRESET_MODE
        | ClimateEntityFeature.TURN_OFF
        | ClimateEntityFeature.TURN_ON
    )
    _attr_hvac_modes = [HVACMode.OFF, HVACMode.HEAT, HVACMode.AUTO]
    _attr_preset_modes = [PRESET_NONE, PRESET_FROST_PROTECTION, PRESET_AWAY]
    _attr_min_temp = 5.0
    _attr_max_temp = 30.0
    _attr_target_temperature_step = 0.5

    device: SinopeThermostat

    def __init__(self, coordinator: SinopeDataUpdateCoordinator, device: SinopeThermostat) -> None:
        super().__init__(coordinator, device)
        self._attr_unique_id = f"{device.unique_id}_thermostat"

    @property
    def current_temperature(self) -> float | None:
        return self._value(ROOM_TEMPERATURE.key)

    @property
    def target_temperature(self) -> float | None:
        return self._value(SETPOINT_TEMPERATURE.key)

    @property
    def hvac_mode(self) -> HVACMode:
        return mode_to_hvac(self._value(SETPOINT_MODE.key))

    @property
    def preset_mode(self) -> str:
        return mode_to_preset(self._value(SETPOINT_MODE.key))

    @property
    def hvac_action(self) -> HVACAction:
        if self.hvac_mode is HVACMode.OFF:
            return HVACAction.OFF
        heat_level = self._value(HEAT_LEVEL.key)
        return HVACAction.HEATING if heat_level else HVACAction.IDLE

    async def async_set_temperature(self, **kwargs: Any) -> None:
        temperature = kwargs.get(ATTR_TEMPERATURE)
        if temperature is None:
            return
        await self._async_write(self.device.async_set_setpoint_temperature(temperature))

    async def async_set_hvac_mode(self, hvac_mode: HVACMode) -> None:
        mode = hvac_to_mode(hvac_mode)
        if mode is None:
            _LOGGER.error("Unsupported HVAC mode %s", hvac_mode)
            return
        await self._async_write(self.device.async_set_setpoint_mode(mode))

    async def async_set_preset_mode(self, preset_mode: str) -> None:
        mode = preset_to_mode(preset_mode)
        if mode is None:
            _LOGGER.error("Unsupported preset %s", preset_mode)
            return
        await self._async_write(self.device.async_set_setpoint_mode(mode))

    async def _async_write(self, write) -> None:
        try:
            accepted = await write
        except SinopeError as err:
            raise HomeAssistantError(f"Cannot update {self.device.name}: {err}") from err
        if accepted:
            self.coordinator.async_set_updated_data(self.coordinator.snapshot())
