"""Shared fixtures and helpers for hue-daylight tests."""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from hue_daylight.config import DaylightConfig, IntervalConfig, ScheduleConfig, TimedValueConfig
from hue_daylight.lights import LightInfo, MockBridge
from hue_daylight.schedule import LightValues, Schedule, TimeStamp

BERLIN = ZoneInfo("Europe/Berlin")
DAY = date(2026, 6, 15)


def at(hour: int, minute: int = 0, second: int = 0, day: date = DAY, tz=BERLIN, **kwargs) -> datetime:
    """Aware datetime on day at the given wall-clock time."""
    return datetime.combine(day, time(hour, minute, second, **kwargs), tzinfo=tz)


def waypoint(hour: int, color_temperature: int, brightness: int, minute: int = 0, day: date = DAY, tz=BERLIN) -> TimeStamp:
    return TimeStamp(at(hour, minute, day=day, tz=tz), LightValues(color_temperature, brightness))


def example_schedule(day: date = DAY, tz=BERLIN, enable_when_lights_appear: bool = True) -> Schedule:
    """07:00 -> (2700K, 40%), 22:00 -> (4000K, 100%)."""
    return Schedule.for_day(
        day,
        tz,
        target_times=[
            waypoint(7, 2700, 40, day=day, tz=tz),
            waypoint(22, 4000, 100, day=day, tz=tz),
        ],
        enable_when_lights_appear=enable_when_lights_appear,
    )


class FakeClock:
    """Clock whose waits advance time instantly."""

    def __init__(self, start: datetime):
        self.current = start
        self.waits: list[float] = []
        self.on_wait = None

    def now(self) -> datetime:
        return self.current

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.current = self.current + timedelta(seconds=seconds)
        if self.on_wait is not None:
            self.on_wait()
        return False


@pytest.fixture
def schedule_config() -> ScheduleConfig:
    return ScheduleConfig(
        name="living room",
        associated_devices=["mock-1", "mock-2"],
        before_sunrise=[TimedValueConfig("07:00", 2700, 40)],
        after_sunset=[TimedValueConfig("22:00", 4000, 100)],
    )


@pytest.fixture
def config(schedule_config) -> DaylightConfig:
    return DaylightConfig(
        schedules=[schedule_config],
        intervals=IntervalConfig(light_update_seconds=1, state_update_seconds=60),
    )


@pytest.fixture
def bridge() -> MockBridge:
    return MockBridge([
        LightInfo(id=f"mock-{i}", name=f"Mock Light {i}", min_color_temperature=2000, max_color_temperature=6500)
        for i in range(1, 4)
    ])
