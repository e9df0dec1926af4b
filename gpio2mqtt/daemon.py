#!/usr/bin/env python3
"""Orchestrator for the gpio2mqtt daemon.

Wires the configured pins to an MQTT broker:

    main() -> BridgeDaemon.run()
        ├── input-poller    (thread, InputPoller -> telemetry channel)
        ├── output-actuator (thread, command channel -> OutputActuator)
        └── mqtt-link       (event loop, MqttTransport)

The MQTT session runs until the broker refuses the connection, the task
is cancelled (SIGINT) or a worker thread crashes. Shutdown stops the
poller, closes both channels, joins the threads and releases every pin.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import threading
from collections.abc import Callable
from typing import Any, NoReturn

import msgspec

# uvloop is required; fail at import time if it is missing.
import uvloop

from gpio2mqtt.config.logging import configure_logging
from gpio2mqtt.config.settings import ConfigError, RuntimeConfig, load_runtime_config
from gpio2mqtt.const import DEFAULT_CONFIG_PATH, WORKER_JOIN_TIMEOUT
from gpio2mqtt.protocol.payloads import CommandBatch, TelemetryMessage
from gpio2mqtt.services import InputPoller, OutputActuator
from gpio2mqtt.state.queues import Channel
from gpio2mqtt.transport.gpio import HardwareError, InputBank, OutputBank
from gpio2mqtt.transport.mqtt import MqttTransport

logger = logging.getLogger("gpio2mqtt")


class WorkerSpec(msgspec.Struct):
    """A blocking worker run on its own daemon thread."""

    name: str
    target: Callable[[], None]


class BridgeDaemon:
    """Owns the pins, the channels, the worker threads and the MQTT session.

    Attributes:
        config: Validated runtime configuration.
        pin_factory: Optional gpiozero pin factory (MockFactory in tests).
        transport: The MQTT session of the current run, once started.
    """

    def __init__(self, config: RuntimeConfig, *, pin_factory: Any = None) -> None:
        self.config = config
        self.pin_factory = pin_factory
        self.transport: MqttTransport | None = None
        self._worker_failure: tuple[str, BaseException] | None = None

    def _open_banks(self) -> tuple[InputBank, OutputBank]:
        inputs = InputBank(
            self.config.inputs,
            pin_factory=self.pin_factory,
            edge_detection=self.config.publish.on_change,
        )
        outputs = OutputBank(self.config.outputs, pin_factory=self.pin_factory)
        inputs.open()
        try:
            outputs.open()
        except HardwareError:
            inputs.close()
            raise
        logger.info(
            "Acquired %d input(s) and %d output(s).",
            len(self.config.inputs),
            len(self.config.outputs),
        )
        return inputs, outputs

    def _start_worker(
        self,
        spec: WorkerSpec,
        loop: asyncio.AbstractEventLoop,
        link: asyncio.Task[str],
    ) -> threading.Thread:
        thread = threading.Thread(
            target=self._run_worker,
            args=(spec, loop, link),
            name=spec.name,
            daemon=True,
        )
        thread.start()
        return thread

    def _run_worker(
        self,
        spec: WorkerSpec,
        loop: asyncio.AbstractEventLoop,
        link: asyncio.Task[str],
    ) -> None:
        try:
            spec.target()
        except Exception as exc:
            logger.critical("%s worker crashed: %s", spec.name, exc, exc_info=exc)
            try:
                loop.call_soon_threadsafe(self._on_worker_failure, spec.name, exc, link)
            except RuntimeError:
                logger.debug("Event loop already closed; %s failure not propagated", spec.name)

    def _on_worker_failure(self, name: str, exc: BaseException, link: asyncio.Task[str]) -> None:
        if self._worker_failure is None:
            self._worker_failure = (name, exc)
        link.cancel()

    async def run(self) -> str:
        """Run the bridge; returns the final MQTT session state."""
        loop = asyncio.get_running_loop()
        self._worker_failure = None

        telemetry: Channel[TelemetryMessage] = Channel(
            self.config.channel_capacity,
            name="telemetry",
            overflow=self.config.telemetry_overflow,
        )
        commands: Channel[CommandBatch] = Channel(self.config.channel_capacity, name="commands")

        inputs, outputs = self._open_banks()
        poller = InputPoller(inputs, self.config.publish)
        actuator = OutputActuator(outputs)
        self.transport = MqttTransport(self.config, telemetry, commands)

        link = asyncio.create_task(self.transport.run(), name="mqtt-link")
        threads = [
            self._start_worker(WorkerSpec("input-poller", lambda: poller.run(telemetry)), loop, link),
            self._start_worker(WorkerSpec("output-actuator", lambda: actuator.run(commands)), loop, link),
        ]

        try:
            try:
                state = await link
            except asyncio.CancelledError:
                if self._worker_failure is None:
                    logger.info("Main task cancelled; shutting down.")
                    raise
                state = self.transport.fsm_state
        finally:
            poller.stop()
            await telemetry.close(discard_pending=True)
            await commands.close()
            for thread in threads:
                await asyncio.to_thread(thread.join, WORKER_JOIN_TIMEOUT)
                if thread.is_alive():
                    logger.warning("%s did not stop within %.1fs", thread.name, WORKER_JOIN_TIMEOUT)
            inputs.close()
            outputs.close()
            logger.info("gpio2mqtt daemon stopped.")

        if self._worker_failure is not None:
            name, exc = self._worker_failure
            raise RuntimeError(f"{name} worker crashed: {exc}") from exc
        return state


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gpio2mqtt",
        description="Bridge GPIO input and output pins to an MQTT broker.",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the TOML configuration file (default: {DEFAULT_CONFIG_PATH}).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging regardless of the [logging] section.",
    )
    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    args = _build_arg_parser().parse_args(argv)

    try:
        config = load_runtime_config(args.config)
    except ConfigError as exc:
        print(f"gpio2mqtt: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.debug:
        config.debug_logging = True
    configure_logging(config)

    logger.info(
        "Starting gpio2mqtt daemon. MQTT: %s:%d topic=%s",
        config.mqtt.host,
        config.mqtt.port,
        config.mqtt.topic,
    )

    try:
        daemon = BridgeDaemon(config)
        state = asyncio.run(daemon.run(), loop_factory=uvloop.new_event_loop)
    except KeyboardInterrupt:
        logger.info("Daemon interrupted by user.")
        sys.exit(0)
    except HardwareError as exc:
        logger.critical("Unable to acquire pins: %s", exc)
        sys.exit(1)
    except RuntimeError as exc:
        logger.critical("Daemon stopped due to runtime error: %s", exc)
        sys.exit(1)
    except OSError as exc:
        logger.critical("System/OS error during daemon execution: %s", exc, exc_info=True)
        sys.exit(1)

    if state == MqttTransport.STATE_ABORTED:
        logger.critical("MQTT session aborted; exiting.")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
