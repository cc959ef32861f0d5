"""Daily schedule and interval lookup."""

from .types import Interval, LightValues, TimeStamp
from .schedule import Schedule, end_of_day, find_bracket, start_of_day

__all__ = [
    "Interval",
    "LightValues",
    "TimeStamp",
    "Schedule",
    "end_of_day",
    "find_bracket",
    "start_of_day",
]
