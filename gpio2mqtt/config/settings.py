"""Settings loader for the gpio2mqtt daemon.

Configuration is read from a TOML file (``./gpio2mqtt.conf`` by default)
and validated by :class:`~gpio2mqtt.config.schema.RuntimeConfigSchema`.
Unknown keys are rejected.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from marshmallow import ValidationError

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
from .schema import RuntimeConfigSchema

__all__ = [
    "ConfigError",
    "InputPinConfig",
    "Level",
    "MqttSettings",
    "OutputPinConfig",
    "PinMap",
    "PublishSettings",
    "Pull",
    "RuntimeConfig",
    "load_runtime_config",
    "parse_runtime_config",
]

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be loaded or validated."""


def _load_raw_config(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"Missing config file {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc


def _format_errors(messages: Any, prefix: str = "") -> list[str]:
    if isinstance(messages, dict):
        lines: list[str] = []
        for key, value in messages.items():
            label = prefix if key == "_schema" else f"{prefix}{key}"
            lines.extend(_format_errors(value, f"{label}." if label else ""))
        return lines
    if isinstance(messages, list):
        label = prefix.rstrip(".")
        return [f"{label}: {item}" if label else str(item) for item in messages]
    return [f"{prefix.rstrip('.')}: {messages}"]


def parse_runtime_config(raw: dict[str, Any]) -> RuntimeConfig:
    """Validate an already-parsed mapping into a :class:`RuntimeConfig`."""
    try:
        return RuntimeConfigSchema().load(raw)
    except ValidationError as exc:
        raise ConfigError("; ".join(_format_errors(exc.messages))) from exc
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def load_runtime_config(path: str | Path) -> RuntimeConfig:
    """Load configuration from a TOML file."""

    config_path = Path(path)
    raw = _load_raw_config(config_path)
    config = parse_runtime_config(raw)
    logger.debug(
        "Loaded %d input(s) and %d output(s) from %s",
        len(config.inputs),
        len(config.outputs),
        config_path,
    )
    return config
