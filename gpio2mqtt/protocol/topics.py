"""MQTT topic helpers shared across gpio2mqtt components.

Telemetry is published on the configured base topic and commands are
received on ``<base>/set``.
"""

from __future__ import annotations

from ..const import COMMAND_TOPIC_SUFFIX


def _split_segments(path: str) -> tuple[str, ...]:
    if not path:
        return ()
    return tuple(segment for segment in path.split("/") if segment)


def normalise_topic_prefix(prefix: str) -> str:
    """Drop empty segments; ``/demo//prefix/`` becomes ``demo/prefix``."""
    normalised = "/".join(_split_segments(prefix))
    if not normalised:
        raise ValueError("mqtt topic must contain at least one segment")
    return normalised


def topic_path(prefix: str, *segments: str) -> str:
    """Join prefix and optional sub-segments into a topic path."""
    parts = list(_split_segments(prefix))
    for segment in segments:
        cleaned = segment.strip("/")
        if cleaned:
            parts.append(cleaned)
    if not parts:
        raise ValueError("topic path cannot be empty")
    return "/".join(parts)


def telemetry_topic(prefix: str) -> str:
    """e.g. gpio2mqtt"""
    return topic_path(prefix)


def command_topic(prefix: str) -> str:
    """e.g. gpio2mqtt/set"""
    return topic_path(prefix, COMMAND_TOPIC_SUFFIX)
