"""Tests for the poll scheduler.

A dummy client and dummy devices stand in for the gateway, so these
tests only exercise the scheduling logic.
"""

from __future__ import annotations

import asyncio
import logging

import pytest

from custom_components.sinope.api.exceptions import (
    CommandError,
    GatewayBusyError,
    GatewayConnectionError,
)
from custom_components.sinope.api.scheduler import PollScheduler


class DummyClient:
    """Stub of SinopeClient recording the connection attempts."""

    def __init__(self, logged_in: bool = True, error: Exception | None = None) -> None:
        self.logged_in = logged_in
        self.error = error
        self.calls = 0

    async def ensure_connected(self) -> bool:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.logged_in


class DummyDevice:
    """Device recording its refreshes in a shared journal."""

    def __init__(self, name: str, journal: list[str], error: Exception | None = None) -> None:
        self.name = name
        self.journal = journal
        self.error = error

    async def async_refresh(self) -> None:
        self.journal.append(self.name)
        if self.error is not None:
            raise self.error


def _scheduler(client: DummyClient, **kwargs) -> tuple[PollScheduler, list[Exception]]:
    errors: list[Exception] = []
    scheduler = PollScheduler(
        client, 60, on_communication_error=errors.append, warmup=0.01, **kwargs
    )
    return scheduler, errors


def test_register_rejects_none() -> None:
    scheduler, _ = _scheduler(DummyClient())
    with pytest.raises(ValueError):
        scheduler.register(None)


@pytest.mark.asyncio
async def test_register_arms_the_timer() -> None:
    scheduler, _ = _scheduler(DummyClient())
    assert not scheduler.active
    scheduler.register(DummyDevice("a", []))
    assert scheduler.active
    scheduler.stop()
    assert not scheduler.active


@pytest.mark.asyncio
async def test_schedule_is_a_no_op_while_searching() -> None:
    scheduler, _ = _scheduler(DummyClient())
    scheduler.searching = True
    scheduler.register(DummyDevice("a", []))
    assert not scheduler.active
    scheduler.searching = False
    scheduler.schedule()
    assert scheduler.active
    scheduler.stop()


@pytest.mark.asyncio
async def test_unregister() -> None:
    scheduler, _ = _scheduler(DummyClient())
    device = DummyDevice("a", [])
    scheduler.register(device)
    assert scheduler.unregister(device) is True
    assert scheduler.unregister(device) is False
    assert scheduler.devices == []
    scheduler.stop()


@pytest.mark.asyncio
async def test_tick_without_devices_does_not_connect() -> None:
    client = DummyClient()
    scheduler, _ = _scheduler(client)
    await scheduler.tick()
    assert scheduler.ticks == 1
    assert client.calls == 0


@pytest.mark.asyncio
async def test_tick_refreshes_devices_in_order() -> None:
    journal: list[str] = []
    cycles: list[bool] = []
    scheduler, errors = _scheduler(DummyClient(), on_cycle_complete=lambda: cycles.append(True))
    for name in ("a", "b", "c"):
        scheduler.register(DummyDevice(name, journal))
    scheduler.stop()

    await scheduler.tick()
    assert journal == ["a", "b", "c"]
    assert cycles == [True]
    assert errors == []


@pytest.mark.asyncio
async def test_rejected_read_does_not_abort_the_cycle() -> None:
    journal: list[str] = []
    scheduler, errors = _scheduler(DummyClient())
    scheduler.register(DummyDevice("a", journal, error=CommandError(1)))
    scheduler.register(DummyDevice("b", journal))
    scheduler.stop()

    await scheduler.tick()
    assert journal == ["a", "b"]
    assert errors == []


@pytest.mark.asyncio
async def test_communication_error_is_reported() -> None:
    journal: list[str] = []
    cycles: list[bool] = []
    error = GatewayConnectionError("unreachable")
    scheduler, errors = _scheduler(DummyClient(error=error), on_cycle_complete=lambda: cycles.append(True))
    scheduler.register(DummyDevice("a", journal))
    scheduler.stop()

    await scheduler.tick()
    assert errors == [error]
    assert journal == []
    assert cycles == []


@pytest.mark.asyncio
async def test_refused_login_is_reported() -> None:
    scheduler, errors = _scheduler(DummyClient(logged_in=False))
    scheduler.register(DummyDevice("a", []))
    scheduler.stop()

    await scheduler.tick()
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_timer_fires_repeatedly_until_stopped() -> None:
    scheduler, _ = _scheduler(DummyClient())
    scheduler.interval = 0.02
    scheduler.register(DummyDevice("a", []))
    await asyncio.sleep(0.2)
    scheduler.stop()
    await scheduler.wait()
    ticks = scheduler.ticks
    assert ticks >= 2
    await asyncio.sleep(0.1)
    assert scheduler.ticks == ticks


@pytest.mark.asyncio
async def test_tick_is_skipped_while_the_previous_one_runs() -> None:
    release = asyncio.Event()
    started: list[int] = []

    class SlowDevice:
        async def async_refresh(self) -> None:
            started.append(1)
            await release.wait()

    scheduler, _ = _scheduler(DummyClient())
    scheduler.interval = 0.01
    scheduler.register(SlowDevice())
    await asyncio.sleep(0.15)
    assert len(started) == 1

    scheduler.stop()
    release.set()
    await scheduler.wait()


@pytest.mark.asyncio
async def test_search_during_a_cycle_ends_it_quietly(caplog, wait_until) -> None:
    journal: list[str] = []
    cycles: list[bool] = []
    release = asyncio.Event()

    class SlowDevice:
        async def async_refresh(self) -> None:
            journal.append("slow")
            await release.wait()

    scheduler, errors = _scheduler(DummyClient(), on_cycle_complete=lambda: cycles.append(True))
    scheduler.register(SlowDevice())
    scheduler.register(DummyDevice("busy", journal, error=GatewayBusyError("searching")))
    scheduler.register(DummyDevice("after", journal))
    await wait_until(lambda: journal)

    # A search starts while the first device is being refreshed.
    scheduler.stop()
    scheduler.searching = True
    release.set()
    with caplog.at_level(logging.DEBUG):
        await scheduler.wait()
        await asyncio.sleep(0)

    assert journal == ["slow", "busy"]
    assert cycles == []
    assert errors == []
    assert not [record for record in caplog.records if record.levelno >= logging.ERROR]
    assert "ending poll cycle early" in caplog.text
