"""Tests for the frame codec and the application data items.

These tests check the exact bytes produced for each request kind and
that malformed frames are rejected.  They do not need a gateway.
"""

from __future__ import annotations

import asyncio

import pytest

from custom_components.sinope.api.appdata import (
    HEAT_LEVEL,
    OUTDOOR_TEMPERATURE,
    ROOM_TEMPERATURE,
    SETPOINT_MODE,
    SETPOINT_TEMPERATURE,
    THERMOSTAT_ITEMS,
)
from custom_components.sinope.api.exceptions import ProtocolError
from custom_components.sinope.api.frame import (
    DataAnswer,
    DataRequest,
    DeviceReport,
    LoginAnswer,
    LoginRequest,
    build_frame,
    crc8,
    decode_frame,
    encode,
    read_frame,
)

GATEWAY_ID = bytes.fromhex("0123456789ABCDEF")
API_KEY = bytes.fromhex("FEDCBA9876543210")
DEVICE_ID = bytes.fromhex("00000FB1")
SEQ = b"\x01\x00\x00\x00"


def test_crc8_check_value() -> None:
    """CRC-8 with polynomial 0x07 has the well known check value 0xF4."""
    assert crc8(b"123456789") == 0xF4
    assert crc8(b"") == 0


def test_login_request_layout() -> None:
    frame = encode(LoginRequest(GATEWAY_ID, API_KEY))
    assert frame[:2] == b"\x55\x00"
    # size covers the command (2) and the data (16)
    assert frame[2:4] == b"\x12\x00"
    assert frame[4:6] == b"\x10\x01"
    assert frame[6:14] == GATEWAY_ID
    assert frame[14:22] == API_KEY
    assert len(frame) == 23
    assert frame[-1] == crc8(frame[:-1])


def test_read_request_layout() -> None:
    frame = encode(DataRequest.read(DEVICE_ID, ROOM_TEMPERATURE).with_seq(SEQ))
    data = frame[6:-1]
    assert frame[4:6] == b"\x40\x02"
    assert data[:4] == SEQ
    assert data[4] == 0x00  # read
    assert data[5:11] == bytes(6)
    assert data[11:15] == DEVICE_ID
    assert data[15] == 4
    assert data[16:] == b"\x03\x02\x00\x00"


def test_write_request_layout() -> None:
    frame = encode(DataRequest.write(DEVICE_ID, SETPOINT_TEMPERATURE, 21.5).with_seq(SEQ))
    data = frame[6:-1]
    assert data[4] == 0x01  # write
    assert data[15] == 6
    # 21.5 °C travels as 2150 hundredths of a degree
    assert data[16:] == b"\x08\x02\x00\x00" + b"\x66\x08"


def test_request_without_sequence_is_rejected() -> None:
    with pytest.raises(ValueError):
        encode(DataRequest.read(DEVICE_ID, ROOM_TEMPERATURE))


def test_decode_data_answer() -> None:
    app_data = b"\x03\x02\x00\x00" + (-525).to_bytes(2, "little", signed=True)
    frame = encode(DataAnswer(SEQ, 0, DEVICE_ID, app_data, more=1, attempt=2))
    answer = decode_frame(frame)
    assert isinstance(answer, DataAnswer)
    assert answer.seq == SEQ
    assert answer.ok
    assert answer.more_follows
    assert answer.attempt == 2
    assert answer.device_id == DEVICE_ID
    assert ROOM_TEMPERATURE.decode(answer.app_data) == -5.25


def test_decode_login_answer_with_status_only() -> None:
    answer = decode_frame(build_frame(0x0111, b"\x00"))
    assert isinstance(answer, LoginAnswer)
    assert answer.ok
    refused = decode_frame(encode(LoginAnswer(1, 5, (1, 0, 2))))
    assert not refused.ok
    assert refused.backoff == 5
    assert refused.version == (1, 0, 2)


def test_decode_device_report() -> None:
    report = decode_frame(encode(DeviceReport(DEVICE_ID)))
    assert isinstance(report, DeviceReport)
    assert report.device_id == DEVICE_ID


@pytest.mark.parametrize(
    "mutate",
    [
        lambda frame: frame[:-1] + bytes([frame[-1] ^ 0xFF]),  # checksum
        lambda frame: b"\x54" + frame[1:],  # preamble
        lambda frame: frame[:-2] + frame[-1:],  # truncated
        lambda frame: frame[:4],  # too short
    ],
)
def test_decode_rejects_malformed_frames(mutate) -> None:
    frame = encode(DataRequest.read(DEVICE_ID, ROOM_TEMPERATURE).with_seq(SEQ))
    with pytest.raises(ProtocolError):
        decode_frame(mutate(frame))


def test_decode_rejects_unknown_command() -> None:
    with pytest.raises(ProtocolError):
        decode_frame(build_frame(0x0999, b"\x00"))


@pytest.mark.asyncio
async def test_read_frame_reads_consecutive_frames() -> None:
    reader = asyncio.StreamReader()
    reader.feed_data(encode(DeviceReport(DEVICE_ID)) + encode(LoginAnswer(0)))
    reader.feed_data(encode(DeviceReport(b"\x00\x00\x00\x02"))[:5])
    reader.feed_eof()
    assert isinstance(await read_frame(reader), DeviceReport)
    assert isinstance(await read_frame(reader), LoginAnswer)
    with pytest.raises(ProtocolError):
        await read_frame(reader)


def test_data_item_decode_checks_the_data_id() -> None:
    payload = b"\x04\x02\x00\x00" + b"\x00\x00"
    assert OUTDOOR_TEMPERATURE.decode(payload) == 0.0
    with pytest.raises(ValueError):
        ROOM_TEMPERATURE.decode(payload)
    with pytest.raises(ValueError):
        ROOM_TEMPERATURE.decode(b"\x03\x02\x00\x00\x01")


def test_data_item_write_rules() -> None:
    with pytest.raises(ValueError):
        HEAT_LEVEL.write_payload(10)
    with pytest.raises(ValueError):
        SETPOINT_MODE.encode(300)
    assert SETPOINT_MODE.decode(SETPOINT_MODE.write_payload(4)) == 4


def test_thermostat_read_order() -> None:
    assert [item.key for item in THERMOSTAT_ITEMS] == [
        "outdoor_temperature",
        "room_temperature",
        "setpoint_temperature",
        "setpoint_mode",
        "heat_level",
    ]


@pytest.mark.parametrize(
    "request_",
    [
        LoginRequest(GATEWAY_ID, API_KEY),
        DataRequest.read(DEVICE_ID, ROOM_TEMPERATURE).with_seq(SEQ),
        DataRequest.write(DEVICE_ID, SETPOINT_TEMPERATURE, -4.75).with_seq(SEQ),
        DataRequest.write(DEVICE_ID, SETPOINT_MODE, 3).with_seq(SEQ),
    ],
)
def test_requests_decode_to_the_same_fields(request_) -> None:
    assert decode_frame(encode(request_)) == request_
