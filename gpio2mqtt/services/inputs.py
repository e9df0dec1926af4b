"""Input poller: turns pin edges and heartbeats into telemetry."""

from __future__ import annotations

import logging
import threading

from ..config.model import PublishSettings
from ..protocol.payloads import TelemetryMessage
from ..state.queues import Channel, ChannelClosed
from ..transport.gpio import InputBank

logger = logging.getLogger("gpio2mqtt.inputs")


class InputPoller:
    """Report input levels.

    An edge produces a one-entry *delta*. When no edge arrives within the
    heartbeat interval a *snapshot* of every input is produced instead.
    With ``on_change`` disabled only snapshots are produced.
    """

    def __init__(self, bank: InputBank, publish: PublishSettings | None = None) -> None:
        self.bank = bank
        self.publish = publish or PublishSettings()
        self._stop_event = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        self._stop_event.set()
        self.bank.wake()

    def poll_once(self) -> TelemetryMessage:
        edge = self.bank.wait_for_edge(self.publish.interval)
        if edge is None:
            return self.bank.snapshot()
        number, level = edge
        return {self.bank.name_for(number): level}

    def _next_message(self) -> TelemetryMessage:
        if self.publish.on_change:
            return self.poll_once()
        self._stop_event.wait(self.publish.interval)
        self.bank.discard_edges()
        return self.bank.snapshot()

    def run(self, telemetry: Channel[TelemetryMessage]) -> None:
        """Send telemetry until stopped or the channel closes."""
        logger.info(
            "Input poller started for %d pin(s), heartbeat %.1fs.",
            len(self.bank.pin_numbers),
            self.publish.interval,
        )
        while not self.stopped:
            message = self._next_message()
            if self.stopped:
                break
            if not message:
                continue
            logger.debug("Input state %s", message)
            try:
                telemetry.blocking_send(message)
            except ChannelClosed:
                break
        logger.info("Input poller stopped.")
