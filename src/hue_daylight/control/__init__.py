"""Control loop, clock validation and status web interface."""

from .clock import validate_system_time
from .loop import ControlContext, ControlLoop, LIGHT_UPDATE, ROLLOVER, STATE_UPDATE

__all__ = [
    "validate_system_time",
    "ControlContext",
    "ControlLoop",
    "LIGHT_UPDATE",
    "ROLLOVER",
    "STATE_UPDATE",
]
