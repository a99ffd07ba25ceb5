"""Application data items understood by Sinopé devices.

Every value a device exposes through the gateway is addressed by a
32-bit *data id*.  A read request carries the data id alone; a write
request carries the data id followed by the encoded value, and a data
answer echoes the data id followed by the current value.  This module
centralises the knowledge about those items: their data id, the width
and signedness of their value and the scale applied to it.

Temperatures travel in hundredths of a degree Celsius and are exposed
as floats; percentages and mode codes are plain integers.

External consumers should use the module level constants, for example
``ROOM_TEMPERATURE.decode(answer.app_data)``.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

DATA_ID_SIZE = 4


@dataclass(frozen=True)
class DataItem:
    """Description of a single application data item.

    Parameters
    ----------
    key: str
        A short identifier, also used as the key of the decoded device
        state (e.g. ``"room_temperature"``).
    data_id: int
        The 32-bit identifier sent on the wire.
    size: int
        Width of the value in bytes (1 or 2).
    signed: bool
        Whether the value is a two's complement integer.
    scale: int
        Divisor applied when decoding, multiplier when encoding.  A scale
        of ``1`` keeps the value an ``int``.
    writable: bool
        Whether the gateway accepts write requests for the item.
    """

    key: str
    data_id: int
    size: int
    signed: bool = False
    scale: int = 1
    writable: bool = False

    def read_payload(self) -> bytes:
        """Return the application payload of a read request."""
        return struct.pack("<I", self.data_id)

    def write_payload(self, value: float | int) -> bytes:
        """Return the application payload of a write request for ``value``."""
        if not self.writable:
            raise ValueError(f"{self.key} is read only")
        return struct.pack("<I", self.data_id) + self.encode(value)

    def encode(self, value: float | int) -> bytes:
        raw = int(round(float(value) * self.scale))
        try:
            return raw.to_bytes(self.size, byteorder="little", signed=self.signed)
        except OverflowError as err:
            raise ValueError(f"Value {value} out of range for {self.key}") from err

    def decode(self, app_data: bytes) -> float | int:
        """Decode the value of a data answer payload.

        ``app_data`` is the whole application payload, data id included.
        """
        if len(app_data) < DATA_ID_SIZE + self.size:
            raise ValueError(
                f"Payload too short for {self.key}: {len(app_data)} bytes"
            )
        (data_id,) = struct.unpack_from("<I", app_data)
        if data_id != self.data_id:
            raise ValueError(
                f"Payload carries data id {data_id:#010x}, expected {self.data_id:#010x}"
            )
        raw = int.from_bytes(
            app_data[DATA_ID_SIZE : DATA_ID_SIZE + self.size],
            byteorder="little",
            signed=self.signed,
        )
        if self.scale == 1:
            return raw
        return raw / self.scale


ROOM_TEMPERATURE = DataItem("room_temperature", 0x00000203, 2, signed=True, scale=100)
OUTDOOR_TEMPERATURE = DataItem("outdoor_temperature", 0x00000204, 2, signed=True, scale=100)
SETPOINT_TEMPERATURE = DataItem(
    "setpoint_temperature", 0x00000208, 2, signed=True, scale=100, writable=True
)
SETPOINT_MODE = DataItem("setpoint_mode", 0x00000211, 1, writable=True)
HEAT_LEVEL = DataItem("heat_level", 0x00000220, 1)
OUTPUT_INTENSITY = DataItem("output_intensity", 0x00001000, 1, writable=True)

DATA_ITEMS: dict[str, DataItem] = {
    item.key: item
    for item in (
        ROOM_TEMPERATURE,
        OUTDOOR_TEMPERATURE,
        SETPOINT_TEMPERATURE,
        SETPOINT_MODE,
        HEAT_LEVEL,
        OUTPUT_INTENSITY,
    )
}

# Order matters: a thermostat refresh reads the items in this order.
THERMOSTAT_ITEMS: tuple[DataItem, ...] = (
    OUTDOOR_TEMPERATURE,
    ROOM_TEMPERATURE,
    SETPOINT_TEMPERATURE,
    SETPOINT_MODE,
    HEAT_LEVEL,
)
DIMMER_ITEMS: tuple[DataItem, ...] = (OUTPUT_INTENSITY,)

# Setpoint mode codes reported by the thermostats.
MODE_OFF = 0
MODE_FROST_PROTECTION = 2
MODE_MANUAL = 3
MODE_AUTO = 4
MODE_AWAY = 5
