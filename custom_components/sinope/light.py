"""Light platform: one dimmable light per Sinopé dimmer."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.light import ATTR_BRIGHTNESS, ColorMode, LightEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .api import SinopeDimmer, SinopeError
from .api.appdata import OUTPUT_INTENSITY
from .const import DOMAIN
from .coordinator import SinopeDataUpdateCoordinator
from .entity import SinopeEntity
from .mappings import brightness_to_intensity, intensity_to_brightness

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    coordinator: SinopeDataUpdateCoordinator = hass.data[DOMAIN][entry.entry_id]["coordinator"]
    async_add_entities(
        SinopeLight(coordinator, device)
        for device in coordinator.devices.values()
        if isinstance(device, SinopeDimmer)
    )


class SinopeLight(SinopeEntity, LightEntity):
    """Sinopé dimmer.  The output intensity (0..100 %) maps to the brightness."""

    _attr_name = None
    _attr_color_mode = ColorMode.BRIGHTNESS
    _attr_supported_color_modes = {ColorMode.BRIGHTNESS}

    device: SinopeDimmer

    def __init__(self, coordinator: SinopeDataUpdateCoordinator, device: SinopeDimmer) -> None:
        super().__init__(coordinator, device)
        self._attr_unique_id = f"{device.unique_id}_light"

    @property
    def is_on(self) -> bool | None:
        intensity = self._value(OUTPUT_INTENSITY.key)
        if intensity is None:
            return None
        return intensity > 0

    @property
    def brightness(self) -> int | None:
        intensity = self._value(OUTPUT_INTENSITY.key)
        if intensity is None:
            return None
        return intensity_to_brightness(intensity)

    async def async_turn_on(self, **kwargs: Any) -> None:
        intensity = 100
        if ATTR_BRIGHTNESS in kwargs:
            intensity = max(1, brightness_to_intensity(kwargs[ATTR_BRIGHTNESS]))
        await self._async_set_intensity(intensity)

    async def async_turn_off(self, **kwargs: Any) -> None:
        await self._async_set_intensity(0)

    async def _async_set_intensity(self, intensity: int) -> None:
        try:
            accepted = await self.device.async_set_output_intensity(intensity)
        except SinopeError as err:
            raise HomeAssistantError(f"Cannot update {self.device.name}: {err}") from err
        if not accepted:
            _LOGGER.warning("Dimmer %s did not accept intensity %s", self.device.name, intensity)
            return
        self.coordinator.async_set_updated_data(self.coordinator.snapshot())
