"""Marshmallow schema for RuntimeConfig validation."""

from __future__ import annotations

from typing import Any, Dict

from marshmallow import Schema, ValidationError, fields, post_load, validate, validates_schema

from ..const import (
    DEFAULT_CHANNEL_CAPACITY,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_MQTT_CLIENT_ID,
    DEFAULT_MQTT_CONNECT_TIMEOUT,
    DEFAULT_MQTT_KEEPALIVE,
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTT_TOPIC,
    DEFAULT_PUBLISH_ON_CHANGE,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_TELEMETRY_OVERFLOW,
    MAX_PIN_NUMBER,
)
from .model import (
    InputPinConfig,
    Level,
    MqttSettings,
    OutputPinConfig,
    PinMap,
    PublishSettings,
    Pull,
    RuntimeConfig,
)

# Both spellings are accepted, matching the historical config files.
PULL_CHOICES = ("up", "Up", "down", "Down")
LEVEL_CHOICES = ("low", "Low", "high", "High")
OVERFLOW_CHOICES = ("block", "drop_oldest")


class MqttSchema(Schema):
    """[mqtt] section."""

    host = fields.Str(required=True, validate=validate.Length(min=1))
    port = fields.Int(load_default=DEFAULT_MQTT_PORT, validate=validate.Range(min=1, max=65535))
    username = fields.Str(load_default=None, allow_none=True)
    password = fields.Str(load_default=None, allow_none=True)
    client_id = fields.Str(load_default=DEFAULT_MQTT_CLIENT_ID, validate=validate.Length(min=1))
    topic = fields.Str(load_default=DEFAULT_MQTT_TOPIC, validate=validate.Length(min=1))
    keepalive = fields.Int(load_default=DEFAULT_MQTT_KEEPALIVE, validate=validate.Range(min=1))
    connect_timeout = fields.Float(
        load_default=DEFAULT_MQTT_CONNECT_TIMEOUT, validate=validate.Range(min=0.1)
    )
    reconnect_delay = fields.Float(
        load_default=DEFAULT_RECONNECT_DELAY, validate=validate.Range(min=0.0)
    )

    @validates_schema
    def validate_topic(self, data: Dict[str, Any], **kwargs: Any) -> None:
        if not [segment for segment in data.get("topic", "").split("/") if segment]:
            raise ValidationError("topic must contain at least one segment", field_name="topic")

    @post_load
    def make_settings(self, data: Dict[str, Any], **kwargs: Any) -> MqttSettings:
        return MqttSettings(**data)


class PublishSchema(Schema):
    """[publish] section."""

    interval = fields.Float(load_default=DEFAULT_HEARTBEAT_INTERVAL, validate=validate.Range(min=0.1))
    on_change = fields.Bool(load_default=DEFAULT_PUBLISH_ON_CHANGE)

    @post_load
    def make_settings(self, data: Dict[str, Any], **kwargs: Any) -> PublishSettings:
        return PublishSettings(**data)


class InputPinSchema(Schema):
    """[input.<name>] table."""

    pin = fields.Int(required=True, strict=True, validate=validate.Range(min=0, max=MAX_PIN_NUMBER))
    pull = fields.Str(load_default=None, allow_none=True, validate=validate.OneOf(PULL_CHOICES))


class OutputPinSchema(Schema):
    """[output.<name>] table."""

    pin = fields.Int(required=True, strict=True, validate=validate.Range(min=0, max=MAX_PIN_NUMBER))
    default = fields.Str(load_default=None, allow_none=True, validate=validate.OneOf(LEVEL_CHOICES))


class BridgeSchema(Schema):
    """[bridge] section."""

    channel_capacity = fields.Int(load_default=DEFAULT_CHANNEL_CAPACITY, validate=validate.Range(min=1))
    telemetry_overflow = fields.Str(
        load_default=DEFAULT_TELEMETRY_OVERFLOW, validate=validate.OneOf(OVERFLOW_CHOICES)
    )


class LoggingSchema(Schema):
    """[logging] section."""

    debug = fields.Bool(load_default=DEFAULT_DEBUG_LOGGING)


def _default_bridge() -> Dict[str, Any]:
    return {
        "channel_capacity": DEFAULT_CHANNEL_CAPACITY,
        "telemetry_overflow": DEFAULT_TELEMETRY_OVERFLOW,
    }


def _default_logging() -> Dict[str, Any]:
    return {"debug": DEFAULT_DEBUG_LOGGING}


class RuntimeConfigSchema(Schema):
    """Declarative validation schema for the gpio2mqtt config file."""

    mqtt = fields.Nested(MqttSchema, required=True)
    publish = fields.Nested(PublishSchema, load_default=PublishSettings)
    inputs = fields.Dict(
        keys=fields.Str(validate=validate.Length(min=1)),
        values=fields.Nested(InputPinSchema),
        data_key="input",
        load_default=dict,
    )
    outputs = fields.Dict(
        keys=fields.Str(validate=validate.Length(min=1)),
        values=fields.Nested(OutputPinSchema),
        data_key="output",
        load_default=dict,
    )
    bridge = fields.Nested(BridgeSchema, load_default=_default_bridge)
    logging = fields.Nested(LoggingSchema, load_default=_default_logging)

    @validates_schema
    def validate_unique_pins(self, data: Dict[str, Any], **kwargs: Any) -> None:
        seen: set[int] = set()
        for section in ("inputs", "outputs"):
            for binding in data.get(section, {}).values():
                pin = binding["pin"]
                if pin in seen:
                    raise ValidationError(f"Duplicate use of pin {pin}", field_name="_schema")
                seen.add(pin)

    @post_load
    def make_config(self, data: Dict[str, Any], **kwargs: Any) -> RuntimeConfig:
        inputs = tuple(
            InputPinConfig(
                name=name,
                pin=binding["pin"],
                pull=Pull(binding["pull"].lower()) if binding.get("pull") else None,
            )
            for name, binding in data["inputs"].items()
        )
        outputs = tuple(
            OutputPinConfig(
                name=name,
                pin=binding["pin"],
                default=Level(binding["default"].lower()) if binding.get("default") else None,
            )
            for name, binding in data["outputs"].items()
        )
        return RuntimeConfig(
            mqtt=data["mqtt"],
            pins=PinMap(inputs=inputs, outputs=outputs),
            publish=data["publish"],
            channel_capacity=data["bridge"]["channel_capacity"],
            telemetry_overflow=data["bridge"]["telemetry_overflow"],
            debug_logging=data["logging"]["debug"],
        )
