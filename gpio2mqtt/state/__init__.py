"""Runtime state shared between the bridge workers."""

from .queues import Channel, ChannelClosed, OverflowPolicy

__all__ = ["Channel", "ChannelClosed", "OverflowPolicy"]
