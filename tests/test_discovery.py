"""Tests for the device search and its exclusivity with polling."""

from __future__ import annotations

import asyncio
import logging

import pytest

from custom_components.sinope.api import GatewayBusyError, SinopeGateway, SinopeThermostat
from custom_components.sinope.api.appdata import ROOM_TEMPERATURE, SETPOINT_TEMPERATURE
from custom_components.sinope.api.discovery import DiscoveryState

DEVICE_ID = bytes.fromhex("00000FB1")
NEW_DEVICE_ID = bytes.fromhex("00000C2A")


@pytest.mark.asyncio
async def test_search_suspends_polling_and_reports_devices(fake_gateway, config, wait_until) -> None:
    gateway = SinopeGateway.from_config(config, warmup=0.01)
    gateway.start()
    assert gateway.scheduler.active

    found: list[bytes] = []
    gateway.start_search(found.append)
    assert gateway.discovery.searching
    assert gateway.scheduler.searching
    assert not gateway.scheduler.active

    # Polling cannot be re-armed while searching.
    gateway.scheduler.schedule()
    assert not gateway.scheduler.active

    await wait_until(lambda: gateway.client.is_open)
    await fake_gateway.push_report(NEW_DEVICE_ID)
    await wait_until(lambda: found)
    assert found == [NEW_DEVICE_ID]

    with pytest.raises(GatewayBusyError):
        await gateway.execute_read(DEVICE_ID, ROOM_TEMPERATURE)
    with pytest.raises(GatewayBusyError):
        await gateway.execute_write(DEVICE_ID, SETPOINT_TEMPERATURE, 20.0)
    assert fake_gateway.requests == []

    # Registering a device does not re-arm polling during the search.
    gateway.register(SinopeThermostat(gateway, DEVICE_ID.hex()))
    assert not gateway.scheduler.active
    ticks = gateway.scheduler.ticks

    gateway.stop_search()
    assert gateway.discovery.state is DiscoveryState.IDLE
    assert not gateway.scheduler.searching
    assert gateway.scheduler.active
    assert not gateway.client.is_open

    # Polling resumes after one warm-up delay, on a new connection.
    await wait_until(lambda: gateway.scheduler.ticks > ticks)
    await gateway.scheduler.wait()
    await gateway.execute_read(DEVICE_ID, ROOM_TEMPERATURE)
    assert fake_gateway.connections == 2
    gateway.stop()


@pytest.mark.asyncio
async def test_search_ends_when_the_gateway_closes_the_stream(fake_gateway, config, wait_until) -> None:
    gateway = SinopeGateway.from_config(config, warmup=0.01)
    gateway.start_search(lambda device_id: None)
    await wait_until(lambda: gateway.client.is_open)

    fake_gateway.drop_connections()
    await wait_until(lambda: not gateway.discovery.searching)
    assert gateway.discovery.task is None
    assert not gateway.scheduler.searching
    assert gateway.scheduler.active
    gateway.stop()


@pytest.mark.asyncio
async def test_start_search_twice_keeps_one_search(fake_gateway, config) -> None:
    gateway = SinopeGateway.from_config(config, warmup=0.01)
    gateway.start_search(lambda device_id: None)
    task = gateway.discovery.task
    gateway.start_search(lambda device_id: None)
    assert gateway.discovery.task is task
    gateway.stop()
    await asyncio.gather(task, return_exceptions=True)
    assert task.done()
    assert not gateway.discovery.searching
    assert not gateway.scheduler.active


@pytest.mark.asyncio
async def test_stop_search_when_idle_only_schedules(fake_gateway, config) -> None:
    gateway = SinopeGateway.from_config(config, warmup=0.01)
    gateway.stop_search()
    assert gateway.discovery.state is DiscoveryState.IDLE
    assert gateway.scheduler.active
    gateway.stop()


@pytest.mark.asyncio
async def test_failing_sink_does_not_end_the_search(fake_gateway, config, wait_until, caplog) -> None:
    gateway = SinopeGateway.from_config(config, warmup=0.01)
    found: list[bytes] = []

    def _sink(device_id: bytes) -> None:
        found.append(device_id)
        if len(found) == 1:
            raise RuntimeError("listener failed")

    gateway.start_search(_sink)
    task = gateway.discovery.task
    await wait_until(lambda: gateway.client.is_open)
    with caplog.at_level(logging.ERROR):
        await fake_gateway.push_report(DEVICE_ID)
        await fake_gateway.push_report(NEW_DEVICE_ID)
        await wait_until(lambda: len(found) == 2)

    assert found == [DEVICE_ID, NEW_DEVICE_ID]
    assert gateway.discovery.searching
    assert not task.done()
    assert "Error while handling discovered device 00000FB1" in caplog.text
    gateway.stop()
    await asyncio.gather(task, return_exceptions=True)
