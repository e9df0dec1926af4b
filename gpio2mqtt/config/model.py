"""Data model for gpio2mqtt configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..const import (
    DEFAULT_CHANNEL_CAPACITY,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_MQTT_CLIENT_ID,
    DEFAULT_MQTT_CONNECT_TIMEOUT,
    DEFAULT_MQTT_HOST,
    DEFAULT_MQTT_KEEPALIVE,
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTT_TOPIC,
    DEFAULT_PUBLISH_ON_CHANGE,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_TELEMETRY_OVERFLOW,
)
from ..protocol.topics import command_topic, normalise_topic_prefix, telemetry_topic


class Pull(str, Enum):
    UP = "up"
    DOWN = "down"


class Level(str, Enum):
    LOW = "low"
    HIGH = "high"


@dataclass(slots=True, frozen=True)
class InputPinConfig:
    name: str
    pin: int
    pull: Pull | None = None


@dataclass(slots=True, frozen=True)
class OutputPinConfig:
    name: str
    pin: int
    default: Level | None = None


@dataclass(slots=True, frozen=True)
class PinMap:
    """Ordered input and output bindings; pin numbers are globally unique."""

    inputs: tuple[InputPinConfig, ...] = ()
    outputs: tuple[OutputPinConfig, ...] = ()

    def __post_init__(self) -> None:
        seen: set[int] = set()
        for binding in (*self.inputs, *self.outputs):
            if binding.pin in seen:
                raise ValueError(f"Duplicate use of pin {binding.pin}")
            seen.add(binding.pin)

    @property
    def pin_numbers(self) -> tuple[int, ...]:
        return tuple(binding.pin for binding in (*self.inputs, *self.outputs))


@dataclass(slots=True)
class MqttSettings:
    """Broker connection parameters."""

    host: str = DEFAULT_MQTT_HOST
    port: int = DEFAULT_MQTT_PORT
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    client_id: str = DEFAULT_MQTT_CLIENT_ID
    topic: str = DEFAULT_MQTT_TOPIC
    keepalive: int = DEFAULT_MQTT_KEEPALIVE
    connect_timeout: float = DEFAULT_MQTT_CONNECT_TIMEOUT
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY

    def __post_init__(self) -> None:
        self.topic = normalise_topic_prefix(self.topic)
        if self.reconnect_delay < 0:
            raise ValueError("reconnect_delay must not be negative")

    @property
    def telemetry_topic(self) -> str:
        return telemetry_topic(self.topic)

    @property
    def command_topic(self) -> str:
        return command_topic(self.topic)


@dataclass(slots=True, frozen=True)
class PublishSettings:
    interval: float = DEFAULT_HEARTBEAT_INTERVAL
    on_change: bool = DEFAULT_PUBLISH_ON_CHANGE


@dataclass(slots=True)
class RuntimeConfig:
    """Strongly typed configuration for the bridge."""

    mqtt: MqttSettings
    pins: PinMap = field(default_factory=PinMap)
    publish: PublishSettings = field(default_factory=PublishSettings)
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    telemetry_overflow: str = DEFAULT_TELEMETRY_OVERFLOW
    debug_logging: bool = DEFAULT_DEBUG_LOGGING

    def __post_init__(self) -> None:
        if self.channel_capacity <= 0:
            raise ValueError("channel_capacity must be a positive integer")

    @property
    def inputs(self) -> tuple[InputPinConfig, ...]:
        return self.pins.inputs

    @property
    def outputs(self) -> tuple[OutputPinConfig, ...]:
        return self.pins.outputs
