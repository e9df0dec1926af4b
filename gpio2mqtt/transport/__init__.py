"""Transport abstractions (GPIO, MQTT) for the gpio2mqtt daemon."""

from .gpio import HardwareError, InputBank, OutputBank
from .mqtt import MqttTransport, is_fatal_error, is_retryable_error, mqtt_task

__all__ = [
    "HardwareError",
    "InputBank",
    "MqttTransport",
    "OutputBank",
    "is_fatal_error",
    "is_retryable_error",
    "mqtt_task",
]
