"""One Sinopé gateway: connection, polling, device search and status.

:class:`SinopeGateway` is the single owner of everything tied to one
gateway endpoint: the :class:`~.client.SinopeClient` and its sequence
counter, the :class:`~.scheduler.PollScheduler` and its timer, and the
:class:`~.discovery.DiscoveryEngine` and its search flag.  Device
adapters and the Home Assistant glue only talk to the gateway.

The gateway also maintains the externally visible status.  A
communication failure, wherever it happens, tears the connection down
and turns the status to offline; the next successful login turns it
back online and re-arms polling.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from .appdata import DataItem
from .client import DEFAULT_READ_TIMEOUT, SinopeClient
from .config import Endpoint
from .discovery import DiscoveryEngine
from .exceptions import CommandError, CommunicationError, GatewayBusyError
from .frame import STATUS_OK, DataAnswer, DataRequest, Reply, Request
from .scheduler import FIRST_POLL_DELAY, PollableDevice, PollScheduler

_LOGGER = logging.getLogger(__name__)


class GatewayStatus(enum.Enum):
    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class StatusDetail(enum.Enum):
    NONE = "none"
    CONFIGURATION_ERROR = "configuration_error"
    COMMUNICATION_ERROR = "communication_error"
    BRIDGE_OFFLINE = "bridge_offline"


@dataclass(frozen=True)
class StatusInfo:
    status: GatewayStatus
    detail: StatusDetail = StatusDetail.NONE
    message: Optional[str] = None

    @property
    def online(self) -> bool:
        return self.status is GatewayStatus.ONLINE


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write request; ``status`` is the gateway status code."""

    status: int

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


class SinopeGateway:
    """Owner of the connection to one gateway and of its polling.

    Parameters
    ----------
    endpoint: Endpoint
        The validated gateway configuration.
    on_status: callable, optional
        Called with a :class:`StatusInfo` each time the status changes.
    on_cycle_complete: callable, optional
        Called after each successful poll cycle.
    read_timeout: float or None
        Maximum wait for each reply frame.
    warmup: float
        Delay before the first poll after (re)arming, and before a
        search starts listening.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        on_status: Optional[Callable[[StatusInfo], None]] = None,
        on_cycle_complete: Optional[Callable[[], None]] = None,
        read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT,
        warmup: float = FIRST_POLL_DELAY,
    ) -> None:
        self.endpoint = endpoint
        self.on_status = on_status
        self.on_cycle_complete = on_cycle_complete
        self.status = StatusInfo(GatewayStatus.UNKNOWN)
        self._communication_error = False
        self._stopped = False

        self.client = SinopeClient(
            endpoint,
            read_timeout=read_timeout,
            on_connected=self._handle_connected,
            on_connection_lost=self._handle_connection_lost,
        )
        self.scheduler = PollScheduler(
            self.client,
            endpoint.refresh_interval,
            on_communication_error=self.set_communication_error,
            on_cycle_complete=self._handle_cycle_complete,
            warmup=warmup,
        )
        self.discovery = DiscoveryEngine(self.client, self.scheduler, warmup=warmup)

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs: Any) -> SinopeGateway:
        """Build a gateway from a raw configuration mapping.

        Raises :class:`~.exceptions.ConfigurationError` before anything
        touches the network.
        """
        return cls(Endpoint.from_config(config), **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start polling.  The connection itself is opened lazily."""
        _LOGGER.debug("Initializing Sinopé gateway %s", self.endpoint.hostname)
        self._stopped = False
        self.scheduler.schedule()
        self._set_status(StatusInfo(GatewayStatus.ONLINE))

    def stop(self) -> None:
        """Stop polling and any search, and close the connection.

        Requests still in flight may complete, but none of them re-arms
        polling or changes the status until :meth:`start` is called again.
        """
        self._stopped = True
        self.discovery.stop(resume_polling=False)
        self.scheduler.stop()
        self.client.close()

    async def ensure_connected(self) -> bool:
        return await self.client.ensure_connected()

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def register(self, device: PollableDevice) -> None:
        self.scheduler.register(device)

    def unregister(self, device: PollableDevice) -> bool:
        return self.scheduler.unregister(device)

    async def execute(self, request: Request) -> Reply:
        """Execute one request, reporting communication failures.

        Raises
        ------
        GatewayBusyError
            If a device search holds the connection.
        CommunicationError
            If the connection failed; the status is already offline.
        """
        if self.discovery.searching:
            raise GatewayBusyError("Gateway is searching for devices")
        try:
            return await self.client.execute(request)
        except CommunicationError as err:
            self.set_communication_error(err)
            raise

    async def execute_read(self, device_id: bytes, item: DataItem) -> float | int:
        """Read the current value of ``item`` on a device.

        Raises
        ------
        CommandError
            If the gateway answered with a non-zero status.
        """
        answer = await self.execute(DataRequest.read(device_id, item))
        assert isinstance(answer, DataAnswer)
        if not answer.ok:
            raise CommandError(answer.status, f"Cannot read {item.key}, status: {answer.status}")
        try:
            return item.decode(answer.app_data)
        except ValueError as err:
            raise CommandError(answer.status, str(err)) from err

    async def execute_write(
        self, device_id: bytes, item: DataItem, value: float | int
    ) -> WriteResult:
        """Write ``value`` to ``item`` on a device.

        Polling is stopped for the duration of the write and re-armed
        afterwards, whatever the outcome.
        """
        self.scheduler.stop()
        try:
            answer = await self.execute(DataRequest.write(device_id, item, value))
        finally:
            if not self._stopped:
                self.scheduler.schedule()
        assert isinstance(answer, DataAnswer)
        if answer.ok:
            _LOGGER.debug("%s is now: %s", item.key, value)
        else:
            _LOGGER.debug("Cannot set %s, status: %s", item.key, answer.status)
        return WriteResult(answer.status)

    # ------------------------------------------------------------------
    # Device search
    # ------------------------------------------------------------------
    def start_search(self, sink: Callable[[bytes], None]) -> None:
        self.discovery.start(sink)

    def stop_search(self) -> None:
        self.discovery.stop()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def set_communication_error(self, err: Optional[Exception] = None) -> None:
        """Tear the connection down and report the gateway offline."""
        self.client.close()
        self._report_communication_error(err)

    def _handle_connection_lost(self, err: Exception) -> None:
        self._report_communication_error(err)

    def _report_communication_error(self, err: Optional[Exception]) -> None:
        if self._stopped:
            _LOGGER.debug("Gateway %s is stopped, ignoring: %s", self.endpoint.hostname, err)
            return
        self._communication_error = True
        self._set_status(
            StatusInfo(
                GatewayStatus.OFFLINE,
                StatusDetail.COMMUNICATION_ERROR,
                str(err) if err is not None else None,
            )
        )

    def _handle_connected(self) -> None:
        if self._stopped or not self._communication_error:
            return
        self._communication_error = False
        self._set_status(StatusInfo(GatewayStatus.ONLINE))
        self.scheduler.schedule()

    def _handle_cycle_complete(self) -> None:
        if self.on_cycle_complete is not None:
            self.on_cycle_complete()

    def _set_status(self, status: StatusInfo) -> None:
        if status.status is self.status.status and status.detail is self.status.detail:
            return
        if status.online:
            _LOGGER.info("Gateway %s is online", self.endpoint.hostname)
        else:
            _LOGGER.warning(
                "Gateway %s is offline (%s): %s",
                self.endpoint.hostname,
                status.detail.value,
                status.message,
            )
        self.status = status
        if self.on_status is not None:
            self.on_status(status)
