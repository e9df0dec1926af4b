"""Shared constants for gpio2mqtt bridge components."""

from __future__ import annotations

from typing import Final

DEFAULT_CONFIG_PATH: Final[str] = "./gpio2mqtt.conf"

DEFAULT_MQTT_HOST: Final[str] = "localhost"
DEFAULT_MQTT_PORT: Final[int] = 1883
DEFAULT_MQTT_CLIENT_ID: Final[str] = "gpio2mqtt"
DEFAULT_MQTT_TOPIC: Final[str] = "gpio2mqtt"
DEFAULT_MQTT_KEEPALIVE: Final[int] = 5
DEFAULT_MQTT_CONNECT_TIMEOUT: Final[float] = 5.0
DEFAULT_RECONNECT_DELAY: Final[float] = 2.0

COMMAND_TOPIC_SUFFIX: Final[str] = "set"
TELEMETRY_QOS: Final[int] = 1
COMMAND_QOS: Final[int] = 0

DEFAULT_HEARTBEAT_INTERVAL: Final[float] = 10.0
DEFAULT_PUBLISH_ON_CHANGE: Final[bool] = True

DEFAULT_CHANNEL_CAPACITY: Final[int] = 2
DEFAULT_TELEMETRY_OVERFLOW: Final[str] = "block"

DEFAULT_DEBUG_LOGGING: Final[bool] = False

WORKER_JOIN_TIMEOUT: Final[float] = 5.0
MAX_PIN_NUMBER: Final[int] = 255

__all__ = [
    "COMMAND_QOS",
    "COMMAND_TOPIC_SUFFIX",
    "DEFAULT_CHANNEL_CAPACITY",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_DEBUG_LOGGING",
    "DEFAULT_HEARTBEAT_INTERVAL",
    "DEFAULT_MQTT_CLIENT_ID",
    "DEFAULT_MQTT_CONNECT_TIMEOUT",
    "DEFAULT_MQTT_HOST",
    "DEFAULT_MQTT_KEEPALIVE",
    "DEFAULT_MQTT_PORT",
    "DEFAULT_MQTT_TOPIC",
    "DEFAULT_PUBLISH_ON_CHANGE",
    "DEFAULT_RECONNECT_DELAY",
    "DEFAULT_TELEMETRY_OVERFLOW",
    "MAX_PIN_NUMBER",
    "TELEMETRY_QOS",
    "WORKER_JOIN_TIMEOUT",
]
