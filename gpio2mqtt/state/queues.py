"""Bounded channels between the hardware threads and the MQTT loop.

A :class:`Channel` lives on the asyncio event loop. Coroutines use
:meth:`Channel.send` / :meth:`Channel.recv`; worker threads use the
``blocking_*`` variants, which hop onto the loop and wait for the result.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections import deque
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger("gpio2mqtt.state")


class ChannelClosed(Exception):
    """Raised on send to a closed channel or recv from a closed, drained one."""


class OverflowPolicy(str, Enum):
    BLOCK = "block"
    DROP_OLDEST = "drop_oldest"


class Channel(Generic[T]):
    """FIFO queue with a fixed capacity and explicit close.

    Must be created while the owning event loop is running.
    """

    def __init__(
        self,
        capacity: int,
        *,
        name: str = "channel",
        overflow: OverflowPolicy | str = OverflowPolicy.BLOCK,
    ) -> None:
        if capacity <= 0:
            raise ValueError("channel capacity must be a positive integer")
        self.capacity = capacity
        self.name = name
        self.overflow = OverflowPolicy(overflow)
        self.dropped = 0
        self._items: deque[T] = deque()
        self._closed = False
        self._condition = asyncio.Condition()
        self._loop = asyncio.get_running_loop()

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return (
            f"<Channel {self.name} {len(self._items)}/{self.capacity}"
            f"{' closed' if self._closed else ''}>"
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, item: T) -> None:
        async with self._condition:
            if self.overflow is OverflowPolicy.DROP_OLDEST:
                if self._closed:
                    raise ChannelClosed(self.name)
                if len(self._items) >= self.capacity:
                    self._items.popleft()
                    self.dropped += 1
                    logger.warning("Channel %s full; dropped oldest item", self.name)
            else:
                await self._condition.wait_for(
                    lambda: self._closed or len(self._items) < self.capacity
                )
                if self._closed:
                    raise ChannelClosed(self.name)
            self._items.append(item)
            self._condition.notify_all()

    async def recv(self) -> T:
        """Return the next item; pending items are still delivered after close."""
        async with self._condition:
            await self._condition.wait_for(lambda: self._closed or bool(self._items))
            if not self._items:
                raise ChannelClosed(self.name)
            item = self._items.popleft()
            self._condition.notify_all()
            return item

    async def close(self, *, discard_pending: bool = False) -> None:
        async with self._condition:
            self._closed = True
            if discard_pending and self._items:
                logger.debug("Channel %s discarding %d pending item(s)", self.name, len(self._items))
                self._items.clear()
            self._condition.notify_all()

    def blocking_send(self, item: T) -> None:
        """Thread-side send; blocks while the channel is full."""
        self._run_blocking(self.send(item))

    def blocking_recv(self) -> T:
        """Thread-side recv; blocks until an item arrives or the channel closes."""
        return self._run_blocking(self.recv())

    def _run_blocking(self, coro):
        try:
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError as exc:
            coro.close()
            raise ChannelClosed(self.name) from exc
        try:
            return future.result()
        except concurrent.futures.CancelledError as exc:
            raise ChannelClosed(self.name) from exc


__all__ = ["Channel", "ChannelClosed", "OverflowPolicy"]
