"""Pytest configuration for gpio2mqtt tests."""

from __future__ import annotations

import asyncio
import importlib.util
import inspect
import logging
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from gpiozero import Device
from gpiozero.pins.mock import MockFactory

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from gpio2mqtt.config.model import (  # noqa: E402
    InputPinConfig,
    Level,
    MqttSettings,
    OutputPinConfig,
    PinMap,
    PublishSettings,
    Pull,
    RuntimeConfig,
)

_HAS_PYTEST_ASYNCIO = importlib.util.find_spec("pytest_asyncio") is not None


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test to run on asyncio loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Fallback asyncio runner when pytest-asyncio is unavailable."""
    if _HAS_PYTEST_ASYNCIO:
        return None
    if "asyncio" not in pyfuncitem.keywords:
        return None
    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        kwargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
        loop.run_until_complete(test_function(**kwargs))
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        except (RuntimeError, ValueError):
            pass
        loop.close()
        asyncio.set_event_loop(None)
    return True


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Close and remove all logging handlers after each test to prevent ResourceWarnings."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)


@pytest.fixture()
def mock_factory() -> Iterator[MockFactory]:
    """Isolated gpiozero mock pin factory."""
    factory = MockFactory()
    previous = Device.pin_factory
    Device.pin_factory = factory
    try:
        yield factory
    finally:
        factory.reset()
        Device.pin_factory = previous


@pytest.fixture()
def pin_map() -> PinMap:
    return PinMap(
        inputs=(
            InputPinConfig(name="door", pin=17, pull=Pull.UP),
            InputPinConfig(name="motion", pin=27, pull=Pull.DOWN),
            InputPinConfig(name="button", pin=22),
        ),
        outputs=(
            OutputPinConfig(name="out1", pin=24, default=Level.LOW),
            OutputPinConfig(name="led", pin=25),
        ),
    )


@pytest.fixture()
def runtime_config(pin_map: PinMap) -> RuntimeConfig:
    return RuntimeConfig(
        mqtt=MqttSettings(host="localhost", topic="gpio2mqtt", reconnect_delay=2.0),
        pins=pin_map,
        publish=PublishSettings(interval=0.05, on_change=True),
    )
