"""Hue light control modules."""

from .state import LightInfo, LightState, kelvin_to_mirek, mirek_to_kelvin
from .light import Light
from .bridge import HueBridge, MockBridge

__all__ = [
    "LightInfo",
    "LightState",
    "kelvin_to_mirek",
    "mirek_to_kelvin",
    "Light",
    "HueBridge",
    "MockBridge",
]
