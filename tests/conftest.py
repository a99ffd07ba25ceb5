"""Shared test fixtures.

The protocol-level tests talk to :class:`FakeGateway`, a small TCP
server built on :func:`asyncio.start_server` that speaks the gateway
frame format: it answers login requests, answers data requests from an
in-memory table of device values and can push device reports.  No live
gateway is needed.
"""

from __future__ import annotations

import asyncio
import struct
from typing import Any, Awaitable, Callable

import pytest
import pytest_asyncio

from custom_components.sinope.api.config import Endpoint
from custom_components.sinope.api.exceptions import ProtocolError
from custom_components.sinope.api.frame import (
    STATUS_OK,
    DataAnswer,
    DataRequest,
    DeviceReport,
    LoginAnswer,
    LoginRequest,
    encode,
    read_frame,
)

GATEWAY_ID = bytes.fromhex("0123456789ABCDEF")
API_KEY = bytes.fromhex("FEDCBA9876543210")
THERMOSTAT_ID = "00000FB1"
DIMMER_ID = "00000C2A"


class FakeGateway:
    """Scriptable stand-in for a GT125 gateway.

    Attributes
    ----------
    login_status: int
        Status returned to every login request.
    read_status, write_status: int
        Status returned to data requests.
    more_frames: int
        Number of intermediate frames (with the "more" flag) sent before
        the final frame of each data answer.
    silent: bool
        When set, data requests are never answered.
    values: dict
        Current value of each ``(device_id, item key)``.
    """

    def __init__(self) -> None:
        self.login_status = STATUS_OK
        self.read_status = STATUS_OK
        self.write_status = STATUS_OK
        self.more_frames = 0
        self.silent = False
        self.values: dict[tuple[bytes, str], Any] = {}
        self.connections = 0
        self.logins: list[LoginRequest] = []
        self.requests: list[DataRequest] = []
        self._writers: list[asyncio.StreamWriter] = []
        self._server: asyncio.AbstractServer | None = None
        self.port = 0

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        self.drop_connections()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    def drop_connections(self) -> None:
        for writer in self._writers:
            writer.close()
        self._writers.clear()

    async def push_report(self, device_id: bytes, status: int = 0) -> None:
        for writer in list(self._writers):
            writer.write(encode(DeviceReport(device_id, status)))
            await writer.drain()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.append(writer)
        try:
            while True:
                message = await read_frame(reader)
                if isinstance(message, LoginRequest):
                    self.logins.append(message)
                    writer.write(encode(LoginAnswer(self.login_status, 0, (1, 2, 3))))
                elif isinstance(message, DataRequest):
                    self.requests.append(message)
                    for reply in self._answer(message):
                        writer.write(encode(reply))
                await writer.drain()
        except (ProtocolError, OSError):
            pass
        finally:
            if writer in self._writers:
                self._writers.remove(writer)
            writer.close()

    def _answer(self, request: DataRequest) -> list[DataAnswer]:
        if self.silent:
            return []
        key = (request.device_id, request.item.key)
        if request.is_write:
            status = self.write_status
            if status in (STATUS_OK, 0x0A):
                self.values[key] = request.value
        else:
            status = self.read_status
        value = self.values.get(key, 0)
        app_data = struct.pack("<I", request.item.data_id) + request.item.encode(value)
        # Intermediate frames carry a placeholder value and their own attempt
        # number; only the final frame holds the real answer.
        placeholder = struct.pack("<I", request.item.data_id) + request.item.encode(0)
        replies = [
            DataAnswer(request.seq, status, request.device_id, placeholder, more=1, attempt=index)
            for index in range(self.more_frames)
        ]
        replies.append(
            DataAnswer(request.seq, status, request.device_id, app_data, attempt=self.more_frames)
        )
        return replies


@pytest_asyncio.fixture
async def fake_gateway():
    gateway = FakeGateway()
    await gateway.start()
    yield gateway
    await gateway.stop()


@pytest.fixture
def config(fake_gateway: FakeGateway) -> dict[str, Any]:
    return {
        "hostname": "127.0.0.1",
        "port": fake_gateway.port,
        "gateway_id": GATEWAY_ID.hex(),
        "api_key": API_KEY.hex(),
    }


@pytest.fixture
def endpoint(config: dict[str, Any]) -> Endpoint:
    return Endpoint.from_config(config)


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Return a coroutine function polling a predicate until it holds."""
    return _wait_until
