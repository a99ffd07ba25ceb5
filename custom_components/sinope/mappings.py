"""Sinopé setpoint modes ↔ Home Assistant HVAC modes and presets.

Keeping these conversions apart from the entities makes them easy to
reuse from the tests and from other platforms.
"""

from __future__ import annotations

from homeassistant.components.climate.const import (
    PRESET_AWAY,
    PRESET_NONE,
    HVACMode,
)

from .api.appdata import (
    MODE_AUTO,
    MODE_AWAY,
    MODE_FROST_PROTECTION,
    MODE_MANUAL,
    MODE_OFF,
)

PRESET_FROST_PROTECTION = "frost_protection"

# Setpoint mode codes → HVAC modes.  Frost protection and away keep the
# baseboard heating, only the setpoint changes.
SINOPE_TO_HA_HVAC: dict[int, HVACMode] = {
    MODE_OFF: HVACMode.OFF,
    MODE_FROST_PROTECTION: HVACMode.HEAT,
    MODE_MANUAL: HVACMode.HEAT,
    MODE_AUTO: HVACMode.AUTO,
    MODE_AWAY: HVACMode.HEAT,
}

HA_TO_SINOPE_HVAC: dict[HVACMode, int] = {
    HVACMode.OFF: MODE_OFF,
    HVACMode.HEAT: MODE_MANUAL,
    HVACMode.AUTO: MODE_AUTO,
}

SINOPE_TO_HA_PRESET: dict[int, str] = {
    MODE_FROST_PROTECTION: PRESET_FROST_PROTECTION,
    MODE_AWAY: PRESET_AWAY,
}

HA_TO_SINOPE_PRESET: dict[str, int] = {
    PRESET_NONE: MODE_MANUAL,
    PRESET_FROST_PROTECTION: MODE_FROST_PROTECTION,
    PRESET_AWAY: MODE_AWAY,
}


def mode_to_hvac(mode: int | None, default: HVACMode = HVACMode.HEAT) -> HVACMode:
    """Convert a setpoint mode code into an HVAC mode."""
    if mode is None:
        return default
    return SINOPE_TO_HA_HVAC.get(mode, default)


def mode_to_preset(mode: int | None) -> str:
    """Convert a setpoint mode code into a preset, ``none`` if it has none."""
    if mode is None:
        return PRESET_NONE
    return SINOPE_TO_HA_PRESET.get(mode, PRESET_NONE)


def hvac_to_mode(hvac_mode: HVACMode | str) -> int | None:
    return HA_TO_SINOPE_HVAC.get(HVACMode(hvac_mode))


def preset_to_mode(preset: str) -> int | None:
    return HA_TO_SINOPE_PRESET.get(preset)


def brightness_to_intensity(brightness: int) -> int:
    """Convert a Home Assistant brightness (0..255) to a percentage."""
    return max(0, min(100, round(brightness * 100 / 255)))


def intensity_to_brightness(intensity: int) -> int:
    """Convert a dimmer output percentage to a brightness (0..255)."""
    return max(0, min(255, round(intensity * 255 / 100)))
