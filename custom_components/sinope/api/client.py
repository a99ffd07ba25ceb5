"""Asynchronous client for the Sinopé GT125 gateway.

This module defines :class:`SinopeClient`, the owner of the single TCP
connection to a gateway.  The protocol used by the gateway is a binary
request/response protocol (see :mod:`.frame`): every data request is
stamped with a sequence number and may be answered by several frames
chained with a "more" flag.

The connection is lazy.  It is opened, and the login handshake is
performed, the first time a request needs it, and it is re-opened the
same way after any failure.  A single :class:`asyncio.Lock` serialises
everything that touches the stream (connect, login, sequence stamping
and the write and read of one logical request) so that request/response
pairs issued by concurrent callers never interleave.

Failures are reported to the owner through two plain callbacks:
``on_connected`` after every successful login and ``on_connection_lost``
every time the connection is torn down because of an error.  The
:class:`~.gateway.SinopeGateway` uses them to drive its status and its
poll scheduler.

Usage example::

    client = SinopeClient(endpoint)
    answer = await client.execute(DataRequest.read(device_id, ROOM_TEMPERATURE))
    client.close()
"""

from __future__ import annotations

import asyncio
import enum
import logging
import struct
import threading
from typing import AsyncIterator, Callable, Optional

from .config import Endpoint
from .exceptions import GatewayConnectionError, LoginRefusedError, ProtocolError
from .frame import (
    DataAnswer,
    DataRequest,
    DeviceReport,
    LoginAnswer,
    LoginRequest,
    Reply,
    Request,
    encode,
    read_frame,
)

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 10.0
MAX_CONTINUATION_FRAMES = 32


class ConnectionState(enum.Enum):
    """Lifecycle of the gateway connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    LOGGED_IN = "logged_in"
    ERROR = "error"


class SequenceGenerator:
    """Strictly increasing 32-bit counter used to correlate data requests.

    The counter starts at 1 and wraps around after ``0xFFFFFFFF``.  It is
    safe to call :meth:`next` from several threads.
    """

    def __init__(self, start: int = 1) -> None:
        self._value = start & 0xFFFFFFFF
        self._lock = threading.Lock()

    def next(self) -> bytes:
        """Return the current value as 4 little-endian bytes, then increment."""
        with self._lock:
            value = self._value
            self._value = (value + 1) & 0xFFFFFFFF
        return struct.pack("<I", value)


class SinopeClient:
    """Connection manager for one gateway endpoint.

    Parameters
    ----------
    endpoint: Endpoint
        The validated address and credentials of the gateway.
    read_timeout: float or None
        Maximum time to wait for each reply frame.  ``None`` waits
        forever.  Device reports received while searching are never
        subject to this timeout.
    connect_timeout: float
        Maximum time to wait for the TCP connection to open.
    max_frames: int
        Maximum number of frames accepted for a single data request.
    on_connected: callable, optional
        Called without arguments after every successful login.
    on_connection_lost: callable, optional
        Called with the causing exception every time the connection is
        torn down after a failure.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        max_frames: int = MAX_CONTINUATION_FRAMES,
        on_connected: Optional[Callable[[], None]] = None,
        on_connection_lost: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self.endpoint = endpoint
        self.read_timeout = read_timeout
        self.connect_timeout = connect_timeout
        self.max_frames = max_frames
        self.on_connected = on_connected
        self.on_connection_lost = on_connection_lost

        self.sequence = SequenceGenerator()
        self.state = ConnectionState.DISCONNECTED
        self.connect_attempts = 0
        self.last_login_status: Optional[int] = None

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        """Return True if a logged in stream is available."""
        return self._writer is not None and not self._writer.is_closing()

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    async def ensure_connected(self) -> bool:
        """Open the connection and log in if needed.

        Returns
        -------
        bool
            ``True`` if the connection is open and logged in, ``False``
            if the gateway refused the credentials.

        Raises
        ------
        GatewayConnectionError
            If the connection could not be opened or the handshake broke
            down.  The connection is torn down before raising.
        """
        async with self._lock:
            return await self._ensure_connected_locked()

    async def _ensure_connected_locked(self) -> bool:
        if self.is_open:
            return True
        # The peer may have closed the stream since our last request.
        self._discard_stream()

        host, port = self.endpoint.hostname, self.endpoint.port
        _LOGGER.debug("Connecting to Sinopé gateway at %s:%s", host, port)
        self.state = ConnectionState.CONNECTING
        self.connect_attempts += 1
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as err:
            self._fail(err)
            raise GatewayConnectionError(
                f"Cannot connect to gateway at {host}:{port}: {err}"
            ) from err

        try:
            answer = await self._exchange(
                LoginRequest(self.endpoint.gateway_id, self.endpoint.api_key)
            )
        except (OSError, asyncio.TimeoutError, ProtocolError) as err:
            self._fail(err)
            raise GatewayConnectionError(f"Login to {host}:{port} failed: {err}") from err

        self.last_login_status = answer.status
        if not answer.ok:
            _LOGGER.warning(
                "Gateway %s:%s refused the login (status %s), check gateway id and api key",
                host,
                port,
                answer.status,
            )
            self._fail(LoginRefusedError(answer.status))
            return False

        _LOGGER.debug(
            "Logged in to gateway %s:%s (api version %s)",
            host,
            port,
            ".".join(str(part) for part in answer.version),
        )
        self.state = ConnectionState.LOGGED_IN
        if self.on_connected is not None:
            self.on_connected()
        return True

    def close(self) -> None:
        """Close the connection and forget it.

        This method is idempotent; closing an already closed client has
        no effect.  It does not take the request lock, so it can be used
        to unblock a pending read.
        """
        if self._writer is not None:
            _LOGGER.debug("Closing connection to %s", self.endpoint.hostname)
        self._discard_stream()
        self.state = ConnectionState.DISCONNECTED

    def _discard_stream(self) -> None:
        writer = self._writer
        self._reader = None
        self._writer = None
        if writer is not None and not writer.is_closing():
            writer.close()

    def _fail(self, err: Exception) -> None:
        self._discard_stream()
        self.state = ConnectionState.ERROR
        if self.on_connection_lost is not None:
            self.on_connection_lost(err)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    async def execute(self, request: Request) -> Reply:
        """Send one request and return its answer.

        Data requests are stamped with the next sequence number and their
        answer is read frame by frame while the gateway sets the "more"
        flag; the last frame is returned.

        Raises
        ------
        LoginRefusedError
            If the gateway refused the login.
        GatewayConnectionError
            If the connection failed while sending or receiving.
        ProtocolError
            If the answer could not be decoded.  The connection is torn
            down in both cases.
        """
        async with self._lock:
            if not await self._ensure_connected_locked():
                raise LoginRefusedError(self.last_login_status or -1)
            if isinstance(request, DataRequest):
                request = request.with_seq(self.sequence.next())
            try:
                return await self._exchange(request)
            except ProtocolError as err:
                self._fail(err)
                raise
            except (OSError, asyncio.TimeoutError) as err:
                self._fail(err)
                raise GatewayConnectionError(f"Communication with gateway failed: {err!r}") from err

    async def _exchange(self, request: Request) -> Reply:
        assert self._writer is not None, "Stream not connected"
        frame = encode(request)
        _LOGGER.debug("TX %s", frame.hex())
        self._writer.write(frame)
        await self._writer.drain()

        reply = await self._read_reply()
        if isinstance(request, LoginRequest):
            if not isinstance(reply, LoginAnswer):
                raise ProtocolError(f"Expected a login answer, got {type(reply).__name__}")
            return reply

        frames = 1
        while isinstance(reply, DataAnswer) and reply.more_follows:
            if frames >= self.max_frames:
                raise ProtocolError(f"More than {self.max_frames} frames for one request")
            reply = await self._read_reply()
            frames += 1
        if not isinstance(reply, DataAnswer):
            raise ProtocolError(f"Expected a data answer, got {type(reply).__name__}")
        if reply.seq != request.seq:
            _LOGGER.debug(
                "Answer sequence %s does not match request %s",
                reply.seq.hex(),
                request.seq.hex() if request.seq else None,
            )
        return reply

    async def _read_reply(self):
        assert self._reader is not None, "Stream not connected"
        if self.read_timeout is None:
            return await read_frame(self._reader)
        return await asyncio.wait_for(read_frame(self._reader), timeout=self.read_timeout)

    # ------------------------------------------------------------------
    # Device search
    # ------------------------------------------------------------------
    async def listen_for_reports(self) -> AsyncIterator[DeviceReport]:
        """Yield the device reports pushed by the gateway.

        The connection is opened (and logged in) if needed, then frames
        are read without timeout until the stream ends, either because
        :meth:`close` was called or because of an I/O error.  Nothing is
        yielded if the login is refused.  Frames other than device
        reports are skipped.
        """
        async with self._lock:
            if not await self._ensure_connected_locked():
                return
            reader = self._reader
        assert reader is not None
        while True:
            try:
                message = await read_frame(reader)
            except (OSError, ProtocolError) as err:
                _LOGGER.debug("Report stream ended: %s", err)
                return
            if isinstance(message, DeviceReport):
                yield message
            else:
                _LOGGER.debug("Ignoring %s while searching", type(message).__name__)
