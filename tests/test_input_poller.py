"""Tests for the input poller."""

from __future__ import annotations

import asyncio
import threading

import pytest

from gpio2mqtt.config.model import PublishSettings
from gpio2mqtt.services.inputs import InputPoller
from gpio2mqtt.state.queues import Channel
from gpio2mqtt.transport.gpio import InputBank


@pytest.fixture()
def input_bank(mock_factory, pin_map):
    bank = InputBank(pin_map.inputs, pin_factory=mock_factory)
    bank.open()
    mock_factory.pin(17).drive_high()
    mock_factory.pin(27).drive_low()
    mock_factory.pin(22).drive_low()
    # Discard edges caused by the initial drive.
    while bank.wait_for_edge(0) is not None:
        pass
    try:
        yield bank
    finally:
        bank.close()


def test_poll_once_returns_delta_on_edge(input_bank, mock_factory) -> None:
    poller = InputPoller(input_bank, PublishSettings(interval=5.0))
    mock_factory.pin(27).drive_high()
    assert poller.poll_once() == {"motion": True}


def test_poll_once_returns_snapshot_on_timeout(input_bank) -> None:
    poller = InputPoller(input_bank, PublishSettings(interval=0.01))
    assert poller.poll_once() == {"door": True, "motion": False, "button": False}


def test_poll_once_uses_fallback_name(input_bank, monkeypatch) -> None:
    poller = InputPoller(input_bank, PublishSettings(interval=1.0))
    monkeypatch.setattr(input_bank, "wait_for_edge", lambda _timeout: (5, True))
    assert poller.poll_once() == {"pin-5": True}


def test_stop_interrupts_wait(input_bank) -> None:
    poller = InputPoller(input_bank, PublishSettings(interval=30.0))
    poller.stop()
    assert poller.stopped
    # wake() makes the pending wait return a snapshot immediately.
    assert poller.poll_once() == input_bank.snapshot()


@pytest.mark.asyncio
async def test_run_sends_deltas_and_heartbeats(input_bank, mock_factory) -> None:
    telemetry: Channel[dict] = Channel(2)
    poller = InputPoller(input_bank, PublishSettings(interval=0.05))
    mock_factory.pin(17).drive_low()
    thread = threading.Thread(target=poller.run, args=(telemetry,))
    thread.start()

    first = await asyncio.wait_for(telemetry.recv(), timeout=2)
    assert first == {"door": False}

    heartbeat = await asyncio.wait_for(telemetry.recv(), timeout=2)
    assert heartbeat == {"door": False, "motion": False, "button": False}

    poller.stop()
    await telemetry.close(discard_pending=True)
    await asyncio.to_thread(thread.join, 2)
    assert not thread.is_alive()


@pytest.mark.asyncio
async def test_run_without_on_change_sends_only_snapshots(input_bank, mock_factory) -> None:
    telemetry: Channel[dict] = Channel(2)
    poller = InputPoller(input_bank, PublishSettings(interval=0.05, on_change=False))
    thread = threading.Thread(target=poller.run, args=(telemetry,))
    thread.start()

    mock_factory.pin(27).drive_high()
    message = await asyncio.wait_for(telemetry.recv(), timeout=2)
    assert set(message) == {"door", "motion", "button"}

    poller.stop()
    await telemetry.close(discard_pending=True)
    await asyncio.to_thread(thread.join, 2)
    assert not thread.is_alive()


@pytest.mark.asyncio
async def test_run_returns_when_channel_closed(input_bank) -> None:
    telemetry: Channel[dict] = Channel(1)
    await telemetry.close()
    poller = InputPoller(input_bank, PublishSettings(interval=0.01))

    await asyncio.wait_for(asyncio.to_thread(poller.run, telemetry), timeout=2)


async def _wait_until(predicate, timeout: float = 3.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_snapshots_only_mode_drops_edges(input_bank, mock_factory) -> None:
    telemetry: Channel[dict] = Channel(2)
    poller = InputPoller(input_bank, PublishSettings(interval=0.02, on_change=False))
    for _ in range(500):
        mock_factory.pin(27).drive_high()
        mock_factory.pin(27).drive_low()
    thread = threading.Thread(target=poller.run, args=(telemetry,))
    thread.start()

    for _ in range(5):
        message = await asyncio.wait_for(telemetry.recv(), timeout=2)
        assert message == {"door": True, "motion": False, "button": False}
    assert input_bank.pending_edges == 0

    poller.stop()
    await telemetry.close(discard_pending=True)
    await asyncio.to_thread(thread.join, 2)
    assert not thread.is_alive()


@pytest.mark.asyncio
async def test_stalled_channel_keeps_one_edge_per_pin(input_bank, mock_factory) -> None:
    telemetry: Channel[dict] = Channel(2)
    poller = InputPoller(input_bank, PublishSettings(interval=30.0))
    thread = threading.Thread(target=poller.run, args=(telemetry,))
    thread.start()

    for _ in range(1000):
        mock_factory.pin(27).drive_high()
        mock_factory.pin(27).drive_low()
    assert input_bank.pending_edges <= 1
    await _wait_until(lambda: len(telemetry) == 2)

    assert input_bank.pending_edges <= 1

    poller.stop()
    await telemetry.close(discard_pending=True)
    await asyncio.to_thread(thread.join, 2)
    assert not thread.is_alive()
