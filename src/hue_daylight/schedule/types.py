"""
Value types for the daily schedule.

- LightValues: A color temperature (Kelvin) and brightness (percent) pair
- TimeStamp: A wall-clock instant with the light values targeted at it
- Interval: The two timestamps bracketing an instant
"""

from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple


class LightValues(NamedTuple):
    """Target light values."""
    color_temperature: int  # Kelvin
    brightness: int  # 0-100


@dataclass(frozen=True)
class TimeStamp:
    """
    A waypoint of the day.

    values is None when the light values are not known yet. Such a timestamp
    takes the values of the opposite bound once it is part of an Interval.
    """
    time: datetime
    values: LightValues | None = None

    @property
    def resolved(self) -> bool:
        return self.values is not None

    def with_values(self, values: LightValues | None) -> "TimeStamp":
        """Return a copy carrying the given light values."""
        return TimeStamp(self.time, values)

    def __str__(self) -> str:
        if self.values is None:
            return f"{self.time:%H:%M:%S} (unresolved)"
        return f"{self.time:%H:%M:%S} ({self.values.color_temperature}K, {self.values.brightness}%)"


@dataclass(frozen=True)
class Interval:
    """A pair of timestamps bracketing an instant."""
    start: TimeStamp
    end: TimeStamp

    @property
    def duration(self) -> float:
        """Length of the interval in seconds of absolute time."""
        return self.end.time.timestamp() - self.start.time.timestamp()

    def fraction(self, now: datetime) -> float:
        """
        Elapsed fraction of the interval at now, clamped to [0, 1].

        Measured on absolute time so that a daylight saving shift inside the
        interval does not distort the transition.
        """
        duration = self.duration
        if duration <= 0:
            return 1.0
        elapsed = now.timestamp() - self.start.time.timestamp()
        return max(0.0, min(1.0, elapsed / duration))

    def interpolate(self, now: datetime) -> LightValues:
        """
        Linearly interpolate the light values at now.

        Raises:
            ValueError: If either bound is unresolved
        """
        if self.start.values is None or self.end.values is None:
            raise ValueError(f"Cannot interpolate unresolved interval {self}")

        progress = self.fraction(now)
        start, end = self.start.values, self.end.values
        color_temperature = start.color_temperature + progress * (end.color_temperature - start.color_temperature)
        brightness = start.brightness + progress * (end.brightness - start.brightness)
        return LightValues(round(color_temperature), round(brightness))

    def __str__(self) -> str:
        return f"[{self.start} -> {self.end}]"
