"""MQTT transport for the gpio2mqtt daemon.

:class:`MqttTransport` owns the broker connection. Its lifecycle is a
``transitions`` state machine; reconnection is driven by tenacity with a
fixed delay and no attempt limit. A refused CONNECT is terminal.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterator

import aiomqtt
import tenacity
from aiomqtt.exceptions import MqttConnectError
from transitions import Machine

from ..config.settings import RuntimeConfig
from ..const import COMMAND_QOS, TELEMETRY_QOS
from ..protocol.payloads import (
    CommandBatch,
    PayloadValidationError,
    TelemetryMessage,
    decode_command_batch,
    encode_telemetry,
)
from ..state.queues import Channel, ChannelClosed

logger = logging.getLogger("gpio2mqtt.mqtt")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    aiomqtt.MqttError,
    OSError,
    asyncio.TimeoutError,
)


def is_fatal_error(exc: BaseException) -> bool:
    """A broker refusal ends the session for good."""
    return isinstance(exc, MqttConnectError)


def is_retryable_error(exc: BaseException) -> bool:
    if is_fatal_error(exc):
        return False
    return isinstance(exc, RETRYABLE_ERRORS)


def _leaves(group: BaseExceptionGroup) -> Iterator[BaseException]:
    for exc in group.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            yield from _leaves(exc)
        else:
            yield exc


def _pick_leaf(group: BaseExceptionGroup) -> BaseException:
    """Fatal errors take precedence, then the first error raised."""
    leaves = list(_leaves(group))
    for exc in leaves:
        if is_fatal_error(exc):
            return exc
    return leaves[0]


async def _retry_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


class MqttTransport:
    """MQTT transport with FSM-based state management."""

    # FSM States
    STATE_DISCONNECTED = "disconnected"
    STATE_CONNECTING = "connecting"
    STATE_CONNECTED = "connected"
    STATE_SUBSCRIBING = "subscribing"
    STATE_READY = "ready"
    STATE_RETRY_WAIT = "retry_wait"
    STATE_ABORTED = "aborted"

    def __init__(
        self,
        config: RuntimeConfig,
        telemetry: Channel[TelemetryMessage],
        commands: Channel[CommandBatch],
    ) -> None:
        self.config = config
        self.telemetry = telemetry
        self.commands = commands
        self.fsm_state = self.STATE_DISCONNECTED
        self.state_history: list[str] = [self.STATE_DISCONNECTED]

        live_states = [
            self.STATE_CONNECTING,
            self.STATE_CONNECTED,
            self.STATE_SUBSCRIBING,
            self.STATE_READY,
        ]

        self.machine = Machine(
            model=self,
            states=[
                self.STATE_DISCONNECTED,
                *live_states,
                self.STATE_RETRY_WAIT,
                self.STATE_ABORTED,
            ],
            initial=self.STATE_DISCONNECTED,
            model_attribute="fsm_state",
            ignore_invalid_triggers=True,
            after_state_change="_record_state",
        )

        self.machine.add_transition(
            "connect",
            [self.STATE_DISCONNECTED, self.STATE_RETRY_WAIT],
            self.STATE_CONNECTING,
        )
        self.machine.add_transition("connected", self.STATE_CONNECTING, self.STATE_CONNECTED)
        self.machine.add_transition("subscribe", self.STATE_CONNECTED, self.STATE_SUBSCRIBING)
        self.machine.add_transition("subscribed", self.STATE_SUBSCRIBING, self.STATE_READY)
        self.machine.add_transition("connection_lost", live_states, self.STATE_RETRY_WAIT)
        self.machine.add_transition(
            "abort",
            [self.STATE_DISCONNECTED, *live_states, self.STATE_RETRY_WAIT],
            self.STATE_ABORTED,
        )
        self.machine.add_transition(
            "disconnect",
            [*live_states, self.STATE_RETRY_WAIT],
            self.STATE_DISCONNECTED,
        )

    @property
    def ready(self) -> bool:
        return self.fsm_state == self.STATE_READY

    @property
    def aborted(self) -> bool:
        return self.fsm_state == self.STATE_ABORTED

    def _record_state(self) -> None:
        self.state_history.append(self.fsm_state)
        logger.debug("MQTT session is %s", self.fsm_state)

    def _before_retry_sleep(self, retry_state: tenacity.RetryCallState) -> None:
        self.trigger("connection_lost")
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "MQTT connection lost (%s); reconnecting in %.1fs (attempt %d)",
            exc,
            retry_state.next_action.sleep if retry_state.next_action else 0,
            retry_state.attempt_number,
        )

    async def run(self) -> str:
        """Connect, serve and reconnect until aborted or cancelled.

        Returns the final state, which is ``aborted`` unless the session
        loops ended on their own.
        """
        retryer = tenacity.AsyncRetrying(
            wait=tenacity.wait_fixed(self.config.mqtt.reconnect_delay),
            retry=tenacity.retry_if_exception(is_retryable_error),
            stop=tenacity.stop_never,
            before_sleep=self._before_retry_sleep,
            sleep=_retry_sleep,
            reraise=True,
        )

        try:
            async for attempt in retryer:
                with attempt:
                    await self._run_session()
        except MqttConnectError as exc:
            self.trigger("abort")
            logger.critical("MQTT broker refused the connection: %s", exc)
            return self.fsm_state
        except asyncio.CancelledError:
            logger.info("MQTT transport stopping.")
            self.trigger("disconnect")
            raise

        self.trigger("disconnect")
        return self.fsm_state

    async def _run_session(self) -> None:
        try:
            await self._connect_session()
        except BaseExceptionGroup as group:
            for exc in _leaves(group):
                logger.error("MQTT session error: %s", exc)
            raise _pick_leaf(group) from None

    async def _connect_session(self) -> None:
        mqtt = self.config.mqtt
        self.trigger("connect")
        logger.info("Connecting to MQTT broker %s:%d as %s", mqtt.host, mqtt.port, mqtt.client_id)

        async with aiomqtt.Client(
            hostname=mqtt.host,
            port=mqtt.port,
            username=mqtt.username,
            password=mqtt.password,
            identifier=mqtt.client_id,
            keepalive=mqtt.keepalive,
            timeout=mqtt.connect_timeout,
            clean_session=True,
            logger=logging.getLogger("gpio2mqtt.mqtt.client"),
        ) as client:
            self.trigger("connected")
            logger.info("Connected to MQTT broker.")

            self.trigger("subscribe")
            await client.subscribe(mqtt.command_topic, qos=COMMAND_QOS)
            self.trigger("subscribed")
            logger.info("Subscribed to %s.", mqtt.command_topic)

            async with asyncio.TaskGroup() as task_group:
                task_group.create_task(self._publisher_loop(client))
                task_group.create_task(self._subscriber_loop(client))

    async def _publisher_loop(self, client: aiomqtt.Client) -> None:
        topic = self.config.mqtt.telemetry_topic
        while True:
            try:
                message = await self.telemetry.recv()
            except ChannelClosed:
                logger.debug("Telemetry channel closed; publisher stopping.")
                return

            payload = encode_telemetry(message)
            try:
                await client.publish(topic, payload, qos=TELEMETRY_QOS, retain=False)
            except aiomqtt.MqttError as exc:
                logger.warning(
                    "MQTT publish to %s failed (%s); message dropped.",
                    topic,
                    exc,
                    extra={"payload": payload},
                )
            else:
                logger.debug("Published %s", message)

    async def _subscriber_loop(self, client: aiomqtt.Client) -> None:
        command_topic = self.config.mqtt.command_topic
        async for message in client.messages:
            topic = str(message.topic)
            if topic != command_topic:
                continue

            try:
                batch = decode_command_batch(message.payload)
            except PayloadValidationError as exc:
                logger.warning(
                    "Dropping command on %s: %s",
                    topic,
                    exc.message,
                    extra={"payload": message.payload},
                )
                continue

            try:
                await self.commands.send(batch)
            except ChannelClosed:
                logger.debug("Command channel closed; subscriber stopping.")
                return

        raise aiomqtt.MqttError("MQTT message stream ended")


async def mqtt_task(
    config: RuntimeConfig,
    telemetry: Channel[TelemetryMessage],
    commands: Channel[CommandBatch],
) -> str:
    """Wrapper to run the MqttTransport."""
    transport = MqttTransport(config, telemetry, commands)
    return await transport.run()
