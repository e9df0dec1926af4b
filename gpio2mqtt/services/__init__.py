"""Pin services for the gpio2mqtt daemon."""

from .inputs import InputPoller
from .outputs import OutputActuator

__all__ = ["InputPoller", "OutputActuator"]
