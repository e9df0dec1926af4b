"""Output actuator: applies command batches to output pins."""

from __future__ import annotations

import logging
from typing import Any

from ..protocol.payloads import ActuationDirective, CoercionError, CommandBatch, coerce
from ..state.queues import Channel, ChannelClosed
from ..transport.gpio import HardwareError, OutputBank

logger = logging.getLogger("gpio2mqtt.outputs")


class OutputActuator:
    """Drive output pins from command batches.

    Every entry of a batch is handled on its own: an unknown pin, a value
    that cannot be coerced or a failed write is logged and the remaining
    entries are still applied.
    """

    def __init__(self, bank: OutputBank) -> None:
        self.bank = bank

    def apply(self, batch: CommandBatch) -> None:
        for name, raw in batch.items():
            self._apply_entry(name, raw)

    def _apply_entry(self, name: str, raw: Any) -> None:
        if name not in self.bank:
            logger.warning("Unknown output pin '%s'", name)
            return

        try:
            directive = coerce(raw)
        except CoercionError as exc:
            logger.warning("Ignoring command for '%s': %s", name, exc.message)
            return

        try:
            if directive is ActuationDirective.TOGGLE:
                level = self.bank.toggle(name)
                logger.debug("Toggled %s to %s", name, "high" if level else "low")
            else:
                self.bank.set(name, directive is ActuationDirective.HIGH)
                logger.debug("Set %s %s", name, directive.value)
        except HardwareError as exc:
            logger.error("Failed to drive output '%s': %s", name, exc)

    def run(self, commands: Channel[CommandBatch]) -> None:
        """Apply batches in receipt order until the channel closes."""
        logger.info("Output actuator started for %d pin(s).", len(self.bank.names))
        while True:
            try:
                batch = commands.blocking_recv()
            except ChannelClosed:
                break
            logger.info("Command was %s", batch)
            self.apply(batch)
        logger.info("Output actuator stopped.")
