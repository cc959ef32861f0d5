"""Observed light state and unit conversions."""

from dataclasses import dataclass
from typing import Optional

from ..schedule import LightValues

# Hue lights report color temperature in mirek (micro reciprocal degrees)
MIREK_TOLERANCE = 1
BRIGHTNESS_TOLERANCE = 1


def kelvin_to_mirek(kelvin: int) -> int:
    return round(1_000_000 / kelvin)


def mirek_to_kelvin(mirek: int) -> int:
    return round(1_000_000 / mirek)


@dataclass
class LightInfo:
    """A light as discovered on the bridge."""
    id: str
    name: str
    min_color_temperature: Optional[int] = None  # Kelvin, None if not supported
    max_color_temperature: Optional[int] = None
    supports_brightness: bool = True  # False for on/off fixtures such as smart plugs

    @property
    def supports_color_temperature(self) -> bool:
        return self.min_color_temperature is not None and self.max_color_temperature is not None

    def clamp(self, values: LightValues) -> LightValues:
        """Clamp values to what this light can display."""
        brightness = max(0, min(100, values.brightness))
        color_temperature = values.color_temperature
        if self.supports_color_temperature:
            color_temperature = max(self.min_color_temperature, min(self.max_color_temperature, color_temperature))
        return LightValues(color_temperature, brightness)


@dataclass(frozen=True)
class LightState:
    """State of a light as last read from the bridge."""
    on: bool
    brightness: int  # 0-100
    color_temperature: Optional[int] = None  # Kelvin, None when in color mode
    reachable: bool = True

    @property
    def visible(self) -> bool:
        """Light is switched on and reachable."""
        return self.on and self.reachable

    def matches(
        self,
        values: LightValues,
        supports_color_temperature: bool = True,
        supports_brightness: bool = True,
    ) -> bool:
        """
        Check whether this state shows values, within bridge rounding.

        Color temperature is compared in mirek, the bridge's native unit.
        Capabilities the fixture lacks are not compared.
        """
        if supports_brightness and abs(self.brightness - values.brightness) > BRIGHTNESS_TOLERANCE:
            return False
        if not supports_color_temperature:
            return True
        if self.color_temperature is None:
            return False
        difference = kelvin_to_mirek(self.color_temperature) - kelvin_to_mirek(values.color_temperature)
        return abs(difference) <= MIREK_TOLERANCE
