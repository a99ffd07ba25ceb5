"""Device adapters: thermostats and dimmers attached to a gateway.

An adapter knows which data items make up the state of its device and
how to turn user commands into write requests.  All traffic goes
through the owning :class:`~.gateway.SinopeGateway`.
"""

from __future__ import annotations

import logging
from typing import Any

from ..utils import format_hex_id, parse_hex_id
from .appdata import (
    DIMMER_ITEMS,
    HEAT_LEVEL,
    OUTDOOR_TEMPERATURE,
    OUTPUT_INTENSITY,
    ROOM_TEMPERATURE,
    SETPOINT_MODE,
    SETPOINT_TEMPERATURE,
    THERMOSTAT_ITEMS,
    DataItem,
)
from .exceptions import ConfigurationError
from .frame import DEVICE_ID_SIZE, STATUS_OK
from .gateway import GatewayStatus, SinopeGateway, StatusDetail, StatusInfo

_LOGGER = logging.getLogger(__name__)

# Dimmers acknowledge writes with this status instead of zero.
DIMMER_WRITE_ACK = 0x0A


class SinopeDevice:
    """Base class for a device reachable through a gateway.

    Parameters
    ----------
    gateway: SinopeGateway
        The gateway the device is paired with.
    device_id: str
        The 4-byte device identifier, as a hex string.
    name: str, optional
        A human readable name.
    """

    items: tuple[DataItem, ...] = ()
    write_ok_statuses: tuple[int, ...] = (STATUS_OK,)

    def __init__(self, gateway: SinopeGateway, device_id: str, name: str | None = None) -> None:
        raw_id = parse_hex_id(device_id, DEVICE_ID_SIZE)
        if raw_id is None:
            raise ConfigurationError("device_id", f"Invalid Device id: {device_id!r}")
        self.gateway = gateway
        self.device_id = raw_id
        self.name = name or format_hex_id(raw_id)
        self.state: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({format_hex_id(self.device_id)})"

    @property
    def unique_id(self) -> str:
        return format_hex_id(self.device_id)

    @property
    def status(self) -> StatusInfo:
        if self.gateway.status.status is GatewayStatus.OFFLINE:
            return StatusInfo(GatewayStatus.OFFLINE, StatusDetail.BRIDGE_OFFLINE)
        return StatusInfo(GatewayStatus.ONLINE)

    async def async_refresh(self) -> None:
        """Read every data item of the device, in order."""
        for item in self.items:
            _LOGGER.debug("Reading %s for device id: %s", item.key, self.unique_id)
            value = await self.gateway.execute_read(self.device_id, item)
            _LOGGER.debug("%s is : %s", item.key, value)
            self.state[item.key] = value

    async def _async_write(self, item: DataItem, value: float | int) -> bool:
        result = await self.gateway.execute_write(self.device_id, item, value)
        if result.status not in self.write_ok_statuses:
            _LOGGER.warning(
                "Device %s rejected %s=%s (status %s)", self.unique_id, item.key, value, result.status
            )
            return False
        self.state[item.key] = value
        return True


class SinopeThermostat(SinopeDevice):
    """Baseboard thermostat (TH1120RF and friends)."""

    items = THERMOSTAT_ITEMS

    @property
    def room_temperature(self) -> float | None:
        return self.state.get(ROOM_TEMPERATURE.key)

    @property
    def outdoor_temperature(self) -> float | None:
        return self.state.get(OUTDOOR_TEMPERATURE.key)

    @property
    def setpoint_temperature(self) -> float | None:
        return self.state.get(SETPOINT_TEMPERATURE.key)

    @property
    def setpoint_mode(self) -> int | None:
        return self.state.get(SETPOINT_MODE.key)

    @property
    def heat_level(self) -> int | None:
        return self.state.get(HEAT_LEVEL.key)

    async def async_set_setpoint_temperature(self, temperature: float) -> bool:
        return await self._async_write(SETPOINT_TEMPERATURE, round(float(temperature), 2))

    async def async_set_setpoint_mode(self, mode: int) -> bool:
        return await self._async_write(SETPOINT_MODE, int(mode))


class SinopeDimmer(SinopeDevice):
    """Light dimmer (DM2500RF)."""

    items = DIMMER_ITEMS
    write_ok_statuses = (STATUS_OK, DIMMER_WRITE_ACK)

    @property
    def output_intensity(self) -> int | None:
        return self.state.get(OUTPUT_INTENSITY.key)

    async def async_set_output_intensity(self, intensity: int) -> bool:
        intensity = max(0, min(100, int(intensity)))
        return await self._async_write(OUTPUT_INTENSITY, intensity)
