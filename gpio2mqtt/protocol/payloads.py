"""Payload models for MQTT telemetry and commands.

Commands arrive as JSON objects mapping pin names to loosely typed values
(``true``, ``0``, ``"toggle"``...). Each value is tagged with a
:class:`ValueKind` and coerced into an :class:`ActuationDirective`.
Telemetry leaves as a JSON object mapping pin names to booleans.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Final

import msgspec

__all__ = [
    "ActuationDirective",
    "CoercionError",
    "CommandBatch",
    "PayloadValidationError",
    "TelemetryMessage",
    "ValueKind",
    "classify_value",
    "coerce",
    "decode_command_batch",
    "encode_telemetry",
]

TelemetryMessage = dict[str, bool]
CommandBatch = dict[str, Any]


class ValueKind(str, Enum):
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    OTHER = "other"


class ActuationDirective(str, Enum):
    HIGH = "high"
    LOW = "low"
    TOGGLE = "toggle"


class CoercionError(ValueError):
    """Raised when a raw command value has no actuation meaning."""

    def __init__(self, message: str, *, kind: ValueKind) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind


class PayloadValidationError(ValueError):
    """Raised when an inbound MQTT payload cannot be validated."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


_STRING_DIRECTIVES: Final[dict[str, ActuationDirective]] = {
    "on": ActuationDirective.HIGH,
    "high": ActuationDirective.HIGH,
    "1": ActuationDirective.HIGH,
    "off": ActuationDirective.LOW,
    "low": ActuationDirective.LOW,
    "0": ActuationDirective.LOW,
    "toggle": ActuationDirective.TOGGLE,
}

_NUMBER_DIRECTIVES: Final[dict[int, ActuationDirective]] = {
    1: ActuationDirective.HIGH,
    0: ActuationDirective.LOW,
}


def classify_value(value: Any) -> ValueKind:
    # bool is an int subclass, so it must be tested first.
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    return ValueKind.OTHER


def coerce(value: Any) -> ActuationDirective:
    """Convert a raw command value into HIGH, LOW or TOGGLE.

    Strings are matched exactly (case-sensitive). Only the integers 0 and 1
    are accepted as numbers.

    Raises:
        CoercionError: If the value has no actuation meaning.
    """
    kind = classify_value(value)

    if kind is ValueKind.BOOL:
        return ActuationDirective.HIGH if value else ActuationDirective.LOW

    if kind is ValueKind.NUMBER:
        if isinstance(value, int) and value in _NUMBER_DIRECTIVES:
            return _NUMBER_DIRECTIVES[value]
        raise CoercionError(
            f'Cannot convert number "{value}" to high/low/toggle',
            kind=kind,
        )

    if kind is ValueKind.STRING:
        try:
            return _STRING_DIRECTIVES[value]
        except KeyError:
            raise CoercionError(
                f'Cannot convert string "{value}" to high/low/toggle',
                kind=kind,
            ) from None

    raise CoercionError(f"Cannot convert {value!r} to high/low/toggle", kind=kind)


def decode_command_batch(payload: Any) -> CommandBatch:
    """Parse an MQTT payload into a non-empty pin name -> raw value mapping."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    if not isinstance(payload, (bytes, bytearray, memoryview)):
        raise PayloadValidationError(f"Unsupported payload type {type(payload).__name__}")

    try:
        batch = msgspec.json.decode(payload, type=CommandBatch)
    except msgspec.ValidationError as exc:
        raise PayloadValidationError(f"Command payload must be a JSON object: {exc}") from exc
    except msgspec.DecodeError as exc:
        raise PayloadValidationError(f"Malformed command payload: {exc}") from exc

    if not batch:
        raise PayloadValidationError("Command payload is empty")
    return batch


def encode_telemetry(message: TelemetryMessage) -> bytes:
    return msgspec.json.encode(message)
