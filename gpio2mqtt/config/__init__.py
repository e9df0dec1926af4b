"""Configuration helpers for the gpio2mqtt daemon."""

from . import logging, settings  # noqa: F401
from .settings import ConfigError, RuntimeConfig, load_runtime_config

__all__ = ["ConfigError", "RuntimeConfig", "load_runtime_config", "logging", "settings"]
