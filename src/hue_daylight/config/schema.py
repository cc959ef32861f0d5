"""Configuration dataclasses."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo
from typing import Optional

from ..schedule import LightValues, Schedule, TimeStamp

CURRENT_VERSION = 1


@dataclass
class HueConfig:
    """Philips Hue bridge configuration."""
    bridge_ip: str
    username: str
    bridge_id: str = ""


@dataclass
class LocationConfig:
    """Geographic location used for sunrise and sunset."""
    latitude: float
    longitude: float
    timezone: Optional[str] = None  # IANA name, None for system local


@dataclass
class IntervalConfig:
    """Cadence of the control loop."""
    light_update_seconds: float = 1.0  # Push/pull light state
    state_update_seconds: float = 60.0  # Recompute interval and target


@dataclass
class WebConfig:
    """Status web interface."""
    enabled: bool = False
    host: str = "localhost"
    port: int = 8080


@dataclass
class TimedValueConfig:
    """A configured waypoint: HH:MM with its light values."""
    time: str
    color_temperature: int
    brightness: int

    def as_time(self) -> time:
        hours, minutes = self.time.split(":")
        return time(int(hours), int(minutes))

    def as_timestamp(self, day: date, tz: tzinfo) -> TimeStamp:
        """Place this waypoint on day in timezone tz."""
        return TimeStamp(
            datetime.combine(day, self.as_time(), tzinfo=tz),
            LightValues(self.color_temperature, self.brightness),
        )


@dataclass
class ScheduleConfig:
    """Light schedule shared by a set of lights."""
    name: str
    associated_devices: list[str] = field(default_factory=list)
    enable_when_lights_appear: bool = True
    default_color_temperature: int = 2750  # At sunrise and sunset
    default_brightness: int = 100
    before_sunrise: list[TimedValueConfig] = field(default_factory=list)
    after_sunset: list[TimedValueConfig] = field(default_factory=list)

    @property
    def default_values(self) -> LightValues:
        return LightValues(self.default_color_temperature, self.default_brightness)

    def schedule_for_day(
        self,
        day: date,
        tz: tzinfo,
        sun_times: tuple[datetime, datetime] | None = None,
    ) -> Schedule:
        """
        Build the schedule of this configuration for one day.

        Sunrise and sunset carry the default values. Waypoints before sunrise
        that fall after it, and waypoints after sunset that fall before it,
        are dropped. Without sun times every waypoint is kept.

        Args:
            day: Calendar day to build for
            tz: Timezone the waypoint times are expressed in
            sun_times: (sunrise, sunset) for the day, or None
        """
        morning = [entry.as_timestamp(day, tz) for entry in self.before_sunrise]
        evening = [entry.as_timestamp(day, tz) for entry in self.after_sunset]

        sunrise = sunset = None
        if sun_times is not None:
            sunrise = TimeStamp(sun_times[0].astimezone(tz), self.default_values)
            sunset = TimeStamp(sun_times[1].astimezone(tz), self.default_values)
            morning = [point for point in morning if point.time < sunrise.time]
            evening = [point for point in evening if point.time > sunset.time]

        return Schedule.for_day(
            day,
            tz,
            target_times=morning + evening,
            sunrise=sunrise,
            sunset=sunset,
            enable_when_lights_appear=self.enable_when_lights_appear,
        )


@dataclass
class DaylightConfig:
    """Main application configuration."""
    hue: Optional[HueConfig] = None
    location: Optional[LocationConfig] = None
    intervals: IntervalConfig = field(default_factory=IntervalConfig)
    web: WebConfig = field(default_factory=WebConfig)
    schedules: list[ScheduleConfig] = field(default_factory=list)
    version: int = CURRENT_VERSION

    def schedule_config_for_light(self, light_id: str) -> Optional[ScheduleConfig]:
        """Find the schedule a light is associated with."""
        for schedule in self.schedules:
            if light_id in schedule.associated_devices:
                return schedule
        return None

    @classmethod
    def with_defaults(cls) -> "DaylightConfig":
        """Create config with one default schedule that no light is associated with yet."""
        return cls(
            schedules=[
                ScheduleConfig(
                    name="default",
                    before_sunrise=[TimedValueConfig("04:00", 2000, 60)],
                    after_sunset=[TimedValueConfig("20:00", 2300, 80), TimedValueConfig("22:00", 2000, 60)],
                )
            ]
        )
