"""Tests for the bounded bridging channel."""

from __future__ import annotations

import asyncio
import threading

import pytest

from gpio2mqtt.state.queues import Channel, ChannelClosed, OverflowPolicy


@pytest.mark.asyncio
async def test_channel_is_fifo() -> None:
    channel: Channel[int] = Channel(3)
    for item in (1, 2, 3):
        await channel.send(item)
    assert len(channel) == 3
    assert [await channel.recv() for _ in range(3)] == [1, 2, 3]


@pytest.mark.asyncio
async def test_send_blocks_when_full() -> None:
    channel: Channel[int] = Channel(1)
    await channel.send(1)

    pending = asyncio.create_task(channel.send(2))
    await asyncio.sleep(0.01)
    assert not pending.done()

    assert await channel.recv() == 1
    await asyncio.wait_for(pending, timeout=1)
    assert await channel.recv() == 2


@pytest.mark.asyncio
async def test_close_wakes_blocked_sender() -> None:
    channel: Channel[int] = Channel(1)
    await channel.send(1)
    pending = asyncio.create_task(channel.send(2))
    await asyncio.sleep(0.01)

    await channel.close()

    with pytest.raises(ChannelClosed):
        await asyncio.wait_for(pending, timeout=1)


@pytest.mark.asyncio
async def test_recv_drains_then_raises_after_close() -> None:
    channel: Channel[str] = Channel(2)
    await channel.send("a")
    await channel.send("b")
    await channel.close()

    assert channel.closed
    assert await channel.recv() == "a"
    assert await channel.recv() == "b"
    with pytest.raises(ChannelClosed):
        await channel.recv()


@pytest.mark.asyncio
async def test_close_can_discard_pending_items() -> None:
    channel: Channel[str] = Channel(2)
    await channel.send("a")
    await channel.close(discard_pending=True)

    with pytest.raises(ChannelClosed):
        await channel.recv()


@pytest.mark.asyncio
async def test_send_after_close_raises() -> None:
    channel: Channel[int] = Channel(2)
    await channel.close()
    with pytest.raises(ChannelClosed):
        await channel.send(1)


@pytest.mark.asyncio
async def test_drop_oldest_never_blocks() -> None:
    channel: Channel[int] = Channel(2, overflow=OverflowPolicy.DROP_OLDEST)
    for item in (1, 2, 3, 4):
        await asyncio.wait_for(channel.send(item), timeout=1)

    assert channel.dropped == 2
    assert [await channel.recv(), await channel.recv()] == [3, 4]


@pytest.mark.asyncio
async def test_overflow_accepts_config_string() -> None:
    channel: Channel[int] = Channel(1, overflow="drop_oldest")
    assert channel.overflow is OverflowPolicy.DROP_OLDEST


@pytest.mark.asyncio
async def test_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        Channel(0)


@pytest.mark.asyncio
async def test_blocking_side_bridges_threads() -> None:
    telemetry: Channel[int] = Channel(1)
    commands: Channel[int] = Channel(1)
    received: list[int] = []

    def producer() -> None:
        for item in range(5):
            telemetry.blocking_send(item)

    def consumer() -> None:
        while True:
            try:
                received.append(commands.blocking_recv())
            except ChannelClosed:
                return

    threads = [threading.Thread(target=producer), threading.Thread(target=consumer)]
    for thread in threads:
        thread.start()

    for _ in range(5):
        await commands.send(await telemetry.recv())
    await commands.close()

    for thread in threads:
        await asyncio.to_thread(thread.join, 2)
    assert received == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_blocking_send_unblocks_on_close() -> None:
    channel: Channel[int] = Channel(1)
    await channel.send(0)
    outcome: list[str] = []

    def producer() -> None:
        try:
            channel.blocking_send(1)
        except ChannelClosed:
            outcome.append("closed")

    thread = threading.Thread(target=producer)
    thread.start()
    await asyncio.sleep(0.05)
    await channel.close(discard_pending=True)
    await asyncio.to_thread(thread.join, 2)

    assert outcome == ["closed"]
