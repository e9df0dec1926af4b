"""Digital pin access through gpiozero.

:class:`InputBank` and :class:`OutputBank` own every line the bridge uses.
They are opened once at startup and released on shutdown. A ``pin_factory``
can be injected; tests pass :class:`gpiozero.pins.mock.MockFactory`.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable

from gpiozero import DigitalInputDevice, DigitalOutputDevice, GPIOZeroError

from ..config.model import InputPinConfig, Level, OutputPinConfig, Pull

logger = logging.getLogger("gpio2mqtt.gpio")

class HardwareError(RuntimeError):
    """Raised when a pin cannot be acquired, read or written."""

    def __init__(self, message: str, *, pin: int | None = None) -> None:
        super().__init__(message)
        self.pin = pin


def _pull_up_for(pull: Pull | None) -> bool | None:
    if pull is Pull.UP:
        return True
    if pull is Pull.DOWN:
        return False
    return None


def _initial_value_for(default: Level | None) -> bool | None:
    if default is Level.HIGH:
        return True
    if default is Level.LOW:
        return False
    return None


def _close_devices(devices: Iterable[Any]) -> None:
    for device in devices:
        try:
            device.close()
        except GPIOZeroError as exc:
            logger.warning("Failed to release %s: %s", device, exc)


class InputBank:
    """Input lines with edge detection on both edges.

    Pending edges are coalesced per pin: while nobody consumes them only the
    latest level of each pin is kept, so at most one edge per input waits.
    With ``edge_detection`` off no callbacks are installed and only
    :meth:`read` and :meth:`snapshot` are meaningful.
    """

    def __init__(
        self,
        bindings: Iterable[InputPinConfig],
        *,
        pin_factory: Any = None,
        edge_detection: bool = True,
    ) -> None:
        self._bindings = tuple(bindings)
        self._pin_factory = pin_factory
        self._devices: dict[int, DigitalInputDevice] = {}
        self._names: dict[int, str] = {}
        self._numbers: dict[int, int] = {}
        self._edge_detection = edge_detection
        self._pending: dict[int, bool] = {}
        self._woken = False
        self._cond = threading.Condition()

    def __enter__(self) -> "InputBank":
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def pin_numbers(self) -> tuple[int, ...]:
        return tuple(self._devices)

    def open(self) -> None:
        opened: dict[int, DigitalInputDevice] = {}
        for binding in self._bindings:
            pull_up = _pull_up_for(binding.pull)
            try:
                device = DigitalInputDevice(
                    binding.pin,
                    pull_up=pull_up,
                    active_state=True if pull_up is None else None,
                    pin_factory=self._pin_factory,
                )
            except GPIOZeroError as exc:
                _close_devices(opened.values())
                raise HardwareError(
                    f"Unable to acquire input pin {binding.pin} ({binding.name}): {exc}",
                    pin=binding.pin,
                ) from exc
            if self._edge_detection:
                device.when_activated = self._on_edge
                device.when_deactivated = self._on_edge
            self._numbers[id(device)] = binding.pin
            opened[binding.pin] = device
            self._names[binding.pin] = binding.name
            logger.debug("Opened input %s on pin %d (pull=%s)", binding.name, binding.pin, binding.pull)
        self._devices = opened

    def close(self) -> None:
        devices, self._devices = self._devices, {}
        _close_devices(devices.values())

    def name_for(self, number: int) -> str:
        return self._names.get(number, f"pin-{number}")

    def read(self, number: int) -> bool:
        """Raw electrical level of an input; True is high."""
        try:
            return bool(self._devices[number].pin.state)
        except KeyError:
            raise HardwareError(f"Input pin {number} is not open", pin=number) from None
        except GPIOZeroError as exc:
            raise HardwareError(f"Unable to read pin {number}: {exc}", pin=number) from exc

    def snapshot(self) -> dict[str, bool]:
        return {self._names[number]: self.read(number) for number in self._devices}

    @property
    def pending_edges(self) -> int:
        with self._cond:
            return len(self._pending)

    def wait_for_edge(self, timeout: float | None) -> tuple[int, bool] | None:
        """Block until an edge, returning ``(pin, level)``; None on timeout or wake()."""
        with self._cond:
            if not self._cond.wait_for(lambda: self._woken or self._pending, timeout):
                return None
            if self._woken:
                self._woken = False
                return None
            number = next(iter(self._pending))
            return number, self._pending.pop(number)

    def discard_edges(self) -> None:
        with self._cond:
            self._pending.clear()

    def wake(self) -> None:
        with self._cond:
            self._woken = True
            self._cond.notify_all()

    def _on_edge(self, device: DigitalInputDevice) -> None:
        number = self._numbers.get(id(device))
        if number is None:
            return
        level = bool(device.pin.state)
        with self._cond:
            # A pin that is already pending keeps its place with the newer level.
            self._pending[number] = level
            self._cond.notify_all()


class OutputBank:
    """Output lines keyed by their configured name."""

    def __init__(self, bindings: Iterable[OutputPinConfig], *, pin_factory: Any = None) -> None:
        self._bindings = tuple(bindings)
        self._pin_factory = pin_factory
        self._devices: dict[str, DigitalOutputDevice] = {}
        self._pins: dict[str, int] = {}

    def __enter__(self) -> "OutputBank":
        self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __contains__(self, name: object) -> bool:
        return name in self._devices

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._devices)

    def open(self) -> None:
        opened: dict[str, DigitalOutputDevice] = {}
        for binding in self._bindings:
            try:
                # initial_value=None leaves the line at its current level.
                device = DigitalOutputDevice(
                    binding.pin,
                    initial_value=_initial_value_for(binding.default),
                    pin_factory=self._pin_factory,
                )
            except GPIOZeroError as exc:
                _close_devices(opened.values())
                raise HardwareError(
                    f"Unable to acquire output pin {binding.pin} ({binding.name}): {exc}",
                    pin=binding.pin,
                ) from exc
            opened[binding.name] = device
            self._pins[binding.name] = binding.pin
            logger.debug(
                "Opened output %s on pin %d (default=%s)", binding.name, binding.pin, binding.default
            )
        self._devices = opened

    def close(self) -> None:
        devices, self._devices = self._devices, {}
        _close_devices(devices.values())

    def set(self, name: str, level: bool) -> None:
        device = self._devices[name]
        try:
            if level:
                device.on()
            else:
                device.off()
        except GPIOZeroError as exc:
            raise HardwareError(f"Unable to write output {name}: {exc}", pin=self._pins[name]) from exc

    def toggle(self, name: str) -> bool:
        """Invert the line and return its new level."""
        device = self._devices[name]
        try:
            device.toggle()
            return bool(device.value)
        except GPIOZeroError as exc:
            raise HardwareError(f"Unable to toggle output {name}: {exc}", pin=self._pins[name]) from exc

    def read(self, name: str) -> bool:
        return bool(self._devices[name].value)


__all__ = ["HardwareError", "InputBank", "OutputBank"]
