"""Payload and topic helpers for gpio2mqtt."""

from .payloads import (
    ActuationDirective,
    CoercionError,
    CommandBatch,
    PayloadValidationError,
    TelemetryMessage,
    ValueKind,
    classify_value,
    coerce,
    decode_command_batch,
    encode_telemetry,
)
from .topics import command_topic, normalise_topic_prefix, telemetry_topic, topic_path

__all__ = [
    "ActuationDirective",
    "CoercionError",
    "CommandBatch",
    "PayloadValidationError",
    "TelemetryMessage",
    "ValueKind",
    "classify_value",
    "coerce",
    "command_topic",
    "decode_command_batch",
    "encode_telemetry",
    "normalise_topic_prefix",
    "telemetry_topic",
    "topic_path",
]
