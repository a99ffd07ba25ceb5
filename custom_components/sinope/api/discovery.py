"""Search for devices asking to be paired with the gateway.

While the gateway is in pairing mode, each device whose pairing button
is pressed makes it push a *device link report* frame on the open
connection.  The search owns the connection exclusively: polling is
suspended while it runs and resumed when it stops.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable, Optional

from ..utils import format_hex_id
from .client import SinopeClient
from .exceptions import CommunicationError
from .scheduler import FIRST_POLL_DELAY, PollScheduler

_LOGGER = logging.getLogger(__name__)


class DiscoveryState(enum.Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    STOPPING = "stopping"


class DiscoveryEngine:
    """Exclusive device search over the gateway connection."""

    def __init__(
        self,
        client: SinopeClient,
        scheduler: PollScheduler,
        *,
        warmup: float = FIRST_POLL_DELAY,
    ) -> None:
        self._client = client
        self._scheduler = scheduler
        self._warmup = warmup
        self._task: Optional[asyncio.Task] = None
        self.state = DiscoveryState.IDLE

    @property
    def searching(self) -> bool:
        return self.state is DiscoveryState.SEARCHING

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start(self, sink: Callable[[bytes], None]) -> None:
        """Stop polling and start forwarding discovered device ids to ``sink``."""
        if self.searching:
            _LOGGER.debug("Device search already running")
            return
        self._scheduler.stop()
        self._scheduler.searching = True
        self.state = DiscoveryState.SEARCHING
        self._task = asyncio.get_running_loop().create_task(self._search(sink))

    def stop(self, resume_polling: bool = True) -> None:
        """Stop the search and give the connection back to polling.

        Closing the connection unblocks the pending read of the search
        loop.  Calling this method when no search runs only makes sure
        polling is scheduled.
        """
        if self.state is not DiscoveryState.IDLE:
            self.state = DiscoveryState.STOPPING
            self._client.close()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self._scheduler.searching = False
        self.state = DiscoveryState.IDLE
        if resume_polling:
            self._scheduler.schedule()

    async def _search(self, sink: Callable[[bytes], None]) -> None:
        try:
            await asyncio.sleep(self._warmup)
            async for report in self._client.listen_for_reports():
                _LOGGER.debug("Got report answer: %s", report)
                _LOGGER.debug("Your device id is: %s", format_hex_id(report.device_id))
                try:
                    sink(report.device_id)
                except Exception:
                    _LOGGER.exception(
                        "Error while handling discovered device %s",
                        format_hex_id(report.device_id),
                    )
        except CommunicationError as err:
            _LOGGER.debug("Network connection error, expected when ending search: %s", err)
        finally:
            if self.searching:
                # The stream ended on its own; stop() was not called.
                self._client.close()
                self._scheduler.searching = False
                self.state = DiscoveryState.IDLE
                self._task = None
                self._scheduler.schedule()
