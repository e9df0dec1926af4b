"""Logging helpers for the gpio2mqtt daemon."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from logging import Handler
from logging.config import dictConfig
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Any

import msgspec

from .settings import RuntimeConfig

SYSLOG_SOCKET = Path("/dev/log")
SYSLOG_SOCKET_FALLBACK = Path("/var/run/log")

LOG_LEVEL_ENV = "GPIO2MQTT_LOG"
LOG_STREAM_ENV = "GPIO2MQTT_LOG_STREAM"

_LEVEL_NAMES = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

_RESERVED_LOG_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, None, None, None).__dict__
) | {"message", "asctime"}


def _serialise_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (bytes, bytearray)):
        # Raw payloads are rendered as hex, e.g. [7B 7D].
        return f"[{' '.join(f'{b:02X}' for b in value)}]"
    if isinstance(value, dict):
        return {str(key): _serialise_value(item) for key, item in value.items()}
    return str(value)


def _utc_timestamp(created: float) -> str:
    stamp = datetime.fromtimestamp(created, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Attributes passed through ``extra=`` on the logging call."""
    return {
        key: _serialise_value(value)
        for key, value in vars(record).items()
        if key not in _RESERVED_LOG_KEYS and not key.startswith("_")
    }


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, thread, message.

    Loggers below ``gpio2mqtt.`` are reported by their short name
    (``gpio2mqtt.mqtt`` becomes ``mqtt``).
    """

    PREFIX = "gpio2mqtt."

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name.removeprefix(self.PREFIX),
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        extras = _record_extras(record)
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return msgspec.json.encode(payload).decode("utf-8")


def _syslog_socket() -> Path | None:
    candidates = [SYSLOG_SOCKET]
    # BSD-style systems expose the socket under /var/run instead.
    if SYSLOG_SOCKET == Path("/dev/log"):
        candidates.append(SYSLOG_SOCKET_FALLBACK)
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _build_handler() -> Handler:
    """Syslog when a socket is available, otherwise stderr."""
    socket_path = None if os.environ.get(LOG_STREAM_ENV) else _syslog_socket()
    if socket_path is None:
        return logging.StreamHandler()

    syslog_handler = SysLogHandler(address=str(socket_path), facility=SysLogHandler.LOG_DAEMON)
    syslog_handler.ident = "gpio2mqtt "
    return syslog_handler


def resolve_level_name(config: RuntimeConfig) -> str:
    """DEBUG/INFO from the config, overridden by ``GPIO2MQTT_LOG``."""
    override = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if override in _LEVEL_NAMES:
        return override
    return "DEBUG" if config.debug_logging else "INFO"


def configure_logging(config: RuntimeConfig) -> None:
    """Configure root logging based on runtime settings."""

    level_name = resolve_level_name(config)

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": "gpio2mqtt.config.logging.StructuredLogFormatter",
                }
            },
            "handlers": {
                "gpio2mqtt": {
                    "()": _build_handler,
                    "level": level_name,
                    "formatter": "structured",
                }
            },
            "root": {
                "level": level_name,
                "handlers": ["gpio2mqtt"],
            },
        }
    )

    logging.getLogger("gpio2mqtt").info("Logging configured at level %s", level_name)
