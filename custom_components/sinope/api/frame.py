"""Encoding and decoding of Sinopé gateway frames.

Every message exchanged with the gateway, in either direction, is a
frame with the following layout (multi-byte integers are little-endian)::

    0x55 0x00 | size (2) | command (2) | data (size - 2) | crc (1)

``size`` counts the command and data bytes.  The trailing checksum is a
CRC-8 (polynomial ``0x07``) computed over every preceding byte of the
frame, preamble included.

The command code tells the shape of the data field:

* ``0x0110`` login request: gateway id (8) and API key (8);
* ``0x0111`` login answer: status (1), backoff (2), API version (3);
* ``0x0116`` device link report: status (1) and device id (4), sent
  unsolicited while the gateway is in pairing mode;
* ``0x0240`` data request: sequence (4), request type (1), reserved (6),
  device id (4), application data size (1), application data;
* ``0x0241`` data answer: sequence (4), status (1), attempt (1), more
  flag (1), device id (4), application data size (1), application data.

The application data of data requests and answers starts with the 32-bit
data id of the item (see :mod:`.appdata`).

Decoding resolves the reply variant from the command code, so callers
receive a :class:`LoginAnswer`, :class:`DataAnswer` or
:class:`DeviceReport` directly instead of down-casting a generic reply.

Example
-------

::

    from custom_components.sinope.api.frame import DataRequest, encode
    from custom_components.sinope.api.appdata import ROOM_TEMPERATURE

    request = DataRequest.read(bytes.fromhex("00000fb1"), ROOM_TEMPERATURE)
    frame_bytes = encode(request.with_seq(b"\\x01\\x00\\x00\\x00"))
"""

from __future__ import annotations

import asyncio
import logging
import struct
from dataclasses import dataclass, replace
from typing import Union

from .appdata import DATA_ID_SIZE, DATA_ITEMS, DataItem
from .exceptions import ProtocolError

_LOGGER = logging.getLogger(__name__)

PREAMBLE = b"\x55\x00"
COMMAND_SIZE = 2
CRC_SIZE = 1

CMD_LOGIN_REQUEST = 0x0110
CMD_LOGIN_ANSWER = 0x0111
CMD_DEVICE_REPORT = 0x0116
CMD_DATA_REQUEST = 0x0240
CMD_DATA_ANSWER = 0x0241

REQUEST_READ = 0x00
REQUEST_WRITE = 0x01

# A data answer whose more flag carries this value is followed by
# another frame answering the same request.
MORE_FOLLOWS = 0x01

GATEWAY_ID_SIZE = 8
API_KEY_SIZE = 8
DEVICE_ID_SIZE = 4
SEQ_SIZE = 4
RESERVED_SIZE = 6

STATUS_OK = 0x00

_DATA_REQUEST_HEADER = struct.Struct("<4sB6s4sB")
_DATA_ANSWER_HEADER = struct.Struct("<4sBBB4sB")
_LOGIN_ANSWER = struct.Struct("<BHBBB")
_DEVICE_REPORT = struct.Struct("<B4s")


def crc8(data: bytes) -> int:
    """Compute the CRC-8 checksum used by the gateway.

    Polynomial ``0x07``, initial value ``0x00``, no reflection.

    Parameters
    ----------
    data: bytes
        The bytes over which to compute the checksum.

    Returns
    -------
    int
        The checksum, between 0 and 255.
    """
    crc = 0x00
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x80:
                crc = (crc << 1) ^ 0x07
            else:
                crc <<= 1
            crc &= 0xFF
    return crc


def build_frame(command: int, data: bytes) -> bytes:
    """Wrap ``data`` in a complete frame for ``command``."""
    size = COMMAND_SIZE + len(data)
    if size > 0xFFFF:
        raise ValueError(f"Frame data too large: {len(data)} bytes")
    body = PREAMBLE + struct.pack("<HH", size, command) + data
    return body + bytes([crc8(body)])


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginRequest:
    """Login handshake sent right after the TCP connection is opened."""

    gateway_id: bytes
    api_key: bytes

    command = CMD_LOGIN_REQUEST

    def encode_data(self) -> bytes:
        if len(self.gateway_id) != GATEWAY_ID_SIZE:
            raise ValueError("Gateway id must be 8 bytes")
        if len(self.api_key) != API_KEY_SIZE:
            raise ValueError("API key must be 8 bytes")
        return self.gateway_id + self.api_key


@dataclass(frozen=True)
class DataRequest:
    """Read or write of one application data item on one device.

    ``value`` is ``None`` for a read.  ``seq`` is left empty by callers
    and stamped by the connection manager right before sending.
    """

    device_id: bytes
    item: DataItem
    value: float | int | None = None
    seq: bytes | None = None

    command = CMD_DATA_REQUEST

    @classmethod
    def read(cls, device_id: bytes, item: DataItem) -> DataRequest:
        return cls(device_id, item)

    @classmethod
    def write(cls, device_id: bytes, item: DataItem, value: float | int) -> DataRequest:
        return cls(device_id, item, value)

    @property
    def is_write(self) -> bool:
        return self.value is not None

    @property
    def request_type(self) -> int:
        return REQUEST_WRITE if self.is_write else REQUEST_READ

    def with_seq(self, seq: bytes) -> DataRequest:
        return replace(self, seq=seq)

    def app_data(self) -> bytes:
        if self.is_write:
            return self.item.write_payload(self.value)
        return self.item.read_payload()

    def encode_data(self) -> bytes:
        if self.seq is None or len(self.seq) != SEQ_SIZE:
            raise ValueError("Data request needs a 4 byte sequence number")
        if len(self.device_id) != DEVICE_ID_SIZE:
            raise ValueError("Device id must be 4 bytes")
        app_data = self.app_data()
        header = _DATA_REQUEST_HEADER.pack(
            self.seq,
            self.request_type,
            bytes(RESERVED_SIZE),
            self.device_id,
            len(app_data),
        )
        return header + app_data


Request = Union[LoginRequest, DataRequest]


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginAnswer:
    """Answer to a :class:`LoginRequest`.  A status of zero means success."""

    status: int
    backoff: int = 0
    version: tuple[int, int, int] = (0, 0, 0)

    command = CMD_LOGIN_ANSWER

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def encode_data(self) -> bytes:
        return _LOGIN_ANSWER.pack(self.status, self.backoff, *self.version)


@dataclass(frozen=True)
class DataAnswer:
    """One frame of the answer to a :class:`DataRequest`."""

    seq: bytes
    status: int
    device_id: bytes
    app_data: bytes
    more: int = 0
    attempt: int = 0

    command = CMD_DATA_ANSWER

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def more_follows(self) -> bool:
        return self.more == MORE_FOLLOWS

    def encode_data(self) -> bytes:
        header = _DATA_ANSWER_HEADER.pack(
            self.seq,
            self.status,
            self.attempt,
            self.more,
            self.device_id,
            len(self.app_data),
        )
        return header + self.app_data


@dataclass(frozen=True)
class DeviceReport:
    """Unsolicited report of a device asking to be paired."""

    device_id: bytes
    status: int = 0

    command = CMD_DEVICE_REPORT

    def encode_data(self) -> bytes:
        return _DEVICE_REPORT.pack(self.status, self.device_id)


Reply = Union[LoginAnswer, DataAnswer, DeviceReport]
Message = Union[LoginRequest, DataRequest, LoginAnswer, DataAnswer, DeviceReport]


def encode(message: Message) -> bytes:
    """Return the exact bytes to write on the socket for ``message``."""
    return build_frame(message.command, message.encode_data())


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def _decode_login_request(data: bytes) -> LoginRequest:
    if len(data) != GATEWAY_ID_SIZE + API_KEY_SIZE:
        raise ProtocolError(f"Bad login request length: {len(data)}")
    return LoginRequest(data[:GATEWAY_ID_SIZE], data[GATEWAY_ID_SIZE:])


def _decode_login_answer(data: bytes) -> LoginAnswer:
    if len(data) < 1:
        raise ProtocolError("Empty login answer")
    if len(data) < _LOGIN_ANSWER.size:
        # Older firmwares only send the status byte.
        return LoginAnswer(status=data[0])
    status, backoff, major, minor, bugfix = _LOGIN_ANSWER.unpack_from(data)
    return LoginAnswer(status, backoff, (major, minor, bugfix))


def _split_app_data(data: bytes, offset: int, size: int) -> bytes:
    app_data = data[offset:]
    if len(app_data) != size:
        raise ProtocolError(
            f"Application data size mismatch: header says {size}, got {len(app_data)}"
        )
    return app_data


def _decode_data_request(data: bytes) -> DataRequest:
    if len(data) < _DATA_REQUEST_HEADER.size + DATA_ID_SIZE:
        raise ProtocolError(f"Data request too short: {len(data)} bytes")
    seq, request_type, _, device_id, size = _DATA_REQUEST_HEADER.unpack_from(data)
    app_data = _split_app_data(data, _DATA_REQUEST_HEADER.size, size)
    (data_id,) = struct.unpack_from("<I", app_data)
    item = next((i for i in DATA_ITEMS.values() if i.data_id == data_id), None)
    if item is None:
        raise ProtocolError(f"Unknown data id {data_id:#010x}")
    value = None
    if request_type == REQUEST_WRITE:
        try:
            value = item.decode(app_data)
        except ValueError as err:
            raise ProtocolError(str(err)) from err
    return DataRequest(device_id, item, value, seq)


def _decode_data_answer(data: bytes) -> DataAnswer:
    if len(data) < _DATA_ANSWER_HEADER.size:
        raise ProtocolError(f"Data answer too short: {len(data)} bytes")
    seq, status, attempt, more, device_id, size = _DATA_ANSWER_HEADER.unpack_from(data)
    app_data = _split_app_data(data, _DATA_ANSWER_HEADER.size, size)
    return DataAnswer(seq, status, device_id, app_data, more, attempt)


def _decode_device_report(data: bytes) -> DeviceReport:
    if len(data) < _DEVICE_REPORT.size:
        raise ProtocolError(f"Device report too short: {len(data)} bytes")
    status, device_id = _DEVICE_REPORT.unpack_from(data)
    return DeviceReport(device_id, status)


_DECODERS = {
    CMD_LOGIN_REQUEST: _decode_login_request,
    CMD_LOGIN_ANSWER: _decode_login_answer,
    CMD_DEVICE_REPORT: _decode_device_report,
    CMD_DATA_REQUEST: _decode_data_request,
    CMD_DATA_ANSWER: _decode_data_answer,
}


def decode_body(command: int, data: bytes) -> Message:
    decoder = _DECODERS.get(command)
    if decoder is None:
        raise ProtocolError(f"Unknown command {command:#06x}")
    return decoder(data)


def decode_frame(frame: bytes) -> Message:
    """Decode one complete frame.

    Raises
    ------
    ProtocolError
        If the preamble, the size field or the checksum is wrong, or if
        the command is unknown.
    """
    header_size = len(PREAMBLE) + 2
    if len(frame) < header_size + COMMAND_SIZE + CRC_SIZE:
        raise ProtocolError(f"Frame too short: {len(frame)} bytes")
    if frame[:2] != PREAMBLE:
        raise ProtocolError(f"Bad preamble: {frame[:2].hex()}")
    (size,) = struct.unpack_from("<H", frame, 2)
    if len(frame) != header_size + size + CRC_SIZE:
        raise ProtocolError(
            f"Frame length mismatch: size field {size}, frame {len(frame)} bytes"
        )
    if crc8(frame[:-1]) != frame[-1]:
        raise ProtocolError(f"Bad checksum on frame {frame.hex()}")
    (command,) = struct.unpack_from("<H", frame, header_size)
    return decode_body(command, frame[header_size + COMMAND_SIZE : -1])


async def read_frame(reader: asyncio.StreamReader) -> Message:
    """Read exactly one frame from ``reader`` and decode it.

    This coroutine waits until a complete frame is available.  It never
    consumes bytes beyond the end of the frame, so consecutive calls read
    consecutive frames.

    Raises
    ------
    ProtocolError
        If the stream closes mid-frame or the frame is malformed.
    """
    try:
        preamble = await reader.readexactly(len(PREAMBLE))
        if preamble != PREAMBLE:
            raise ProtocolError(f"Bad preamble: {preamble.hex()}")
        size_bytes = await reader.readexactly(2)
        (size,) = struct.unpack("<H", size_bytes)
        if size < COMMAND_SIZE:
            raise ProtocolError(f"Frame size too small: {size}")
        rest = await reader.readexactly(size + CRC_SIZE)
    except asyncio.IncompleteReadError as err:
        raise ProtocolError(
            f"Stream closed mid-frame ({len(err.partial)} of {err.expected} bytes)"
        ) from err
    frame = preamble + size_bytes + rest
    _LOGGER.debug("RX %s", frame.hex())
    return decode_frame(frame)
