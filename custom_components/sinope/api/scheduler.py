"""Periodic polling of the devices attached to a gateway.

:class:`PollTimer` is a small repeating timer built on
``loop.call_later``; :class:`PollScheduler` uses it to run a full read
cycle over every registered device.  Polling is suspended while the
gateway is searching for new devices, because the device report stream
and the request/response stream share the one connection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from .client import SinopeClient
from .exceptions import CommandError, CommunicationError, GatewayBusyError

_LOGGER = logging.getLogger(__name__)

# Delay (seconds) between arming the timer and the first tick.
FIRST_POLL_DELAY = 1.0


class PollableDevice(Protocol):
    """Anything the scheduler can refresh."""

    async def async_refresh(self) -> None:
        ...


class PollTimer:
    """Repeating timer that runs a coroutine function on the event loop.

    Cancelling the timer only prevents future ticks; a tick already
    running is left to complete.  A tick is skipped when the previous
    one is still running.
    """

    def __init__(self) -> None:
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._interval = 0.0
        self._callback: Optional[Callable[[], Awaitable[None]]] = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def arm(self, delay: float, interval: float, callback: Callable[[], Awaitable[None]]) -> None:
        """Fire ``callback`` after ``delay`` seconds, then every ``interval``."""
        self.cancel()
        self._interval = interval
        self._callback = callback
        self._handle = asyncio.get_running_loop().call_later(delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def wait(self) -> None:
        """Wait for the tick currently running, if any."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)

    def _fire(self) -> None:
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._interval, self._fire)
        if self._task is not None and not self._task.done():
            _LOGGER.debug("Previous poll still running, skipping this tick")
            return
        assert self._callback is not None
        self._task = loop.create_task(self._callback())
        self._task.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            _LOGGER.error("Unexpected error while polling", exc_info=task.exception())


class PollScheduler:
    """Drive the periodic read cycle of the registered devices.

    Parameters
    ----------
    client: SinopeClient
        The connection manager shared with the rest of the gateway.
    interval: float
        Seconds between two read cycles.
    on_communication_error: callable
        Called with the exception when a cycle fails on a communication
        error.  The owner is expected to tear the connection down and
        report the failure.
    on_cycle_complete: callable, optional
        Called without arguments after every successful cycle.
    warmup: float
        Delay before the first tick after (re)arming.
    """

    def __init__(
        self,
        client: SinopeClient,
        interval: float,
        *,
        on_communication_error: Callable[[Exception], None],
        on_cycle_complete: Optional[Callable[[], None]] = None,
        warmup: float = FIRST_POLL_DELAY,
    ) -> None:
        self._client = client
        self.interval = interval
        self.warmup = warmup
        self._on_communication_error = on_communication_error
        self._on_cycle_complete = on_cycle_complete
        self._devices: list[PollableDevice] = []
        self._timer = PollTimer()
        self.searching = False
        self.ticks = 0

    @property
    def active(self) -> bool:
        """Return True while the poll timer is armed."""
        return self._timer.active

    @property
    def devices(self) -> list[PollableDevice]:
        return list(self._devices)

    def schedule(self) -> None:
        """(Re)arm the poll timer, unless a device search is running."""
        if self.searching:
            _LOGGER.debug("Device search in progress, not scheduling poll")
            return
        _LOGGER.debug(
            "Scheduling poll for %s s out, then every %s s", self.warmup, self.interval
        )
        self._timer.arm(self.warmup, self.interval, self.tick)

    def stop(self) -> None:
        self._timer.cancel()

    async def wait(self) -> None:
        """Wait for an in-flight tick to finish."""
        await self._timer.wait()

    def register(self, device: PollableDevice) -> None:
        if device is None:
            raise ValueError("It's not allowed to register a null device")
        if device not in self._devices:
            self._devices.append(device)
        self.schedule()

    def unregister(self, device: PollableDevice) -> bool:
        try:
            self._devices.remove(device)
        except ValueError:
            return False
        finally:
            self.schedule()
        return True

    async def refresh_all(self) -> None:
        """Refresh every registered device, in registration order.

        Devices are refreshed one after the other since they share the
        connection.  A device whose read is rejected by the gateway is
        skipped; a communication error aborts the cycle.

        Raises
        ------
        CommunicationError
            If the connection failed.  Devices after the failing one are
            not refreshed.
        GatewayBusyError
            If a device search started while the cycle was running.
        """
        if not await self._client.ensure_connected():
            raise CommunicationError("Gateway refused the login")
        _LOGGER.debug("Connected to bridge")
        for device in list(self._devices):
            try:
                await device.async_refresh()
            except CommandError as err:
                _LOGGER.warning("Cannot refresh %s: %s", device, err)

    async def tick(self) -> None:
        self.ticks += 1
        if not self._devices:
            _LOGGER.debug("Nothing to poll")
            return
        _LOGGER.debug("Polling for state")
        try:
            await self.refresh_all()
        except GatewayBusyError:
            # A search took the connection over while this cycle was running.
            _LOGGER.debug("Device search started, ending poll cycle early")
            return
        except CommunicationError as err:
            _LOGGER.debug("Polling issue: %s", err)
            self._on_communication_error(err)
            return
        if self._on_cycle_complete is not None:
            self._on_cycle_complete()
