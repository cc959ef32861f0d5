"""Tests for sunrise and sunset calculation."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
import tzlocal

from hue_daylight.config import LocationConfig, ScheduleConfig, TimedValueConfig
from hue_daylight.errors import LocationError
from hue_daylight.location import location_timezone, sunrise_sunset_for

from conftest import BERLIN, DAY

BERLIN_LOCATION = LocationConfig(latitude=52.52, longitude=13.405, timezone="Europe/Berlin")
LONGYEARBYEN = LocationConfig(latitude=78.22, longitude=15.65, timezone="Arctic/Longyearbyen")


@pytest.fixture
def berlin_system_zone(monkeypatch):
    """Run with the system timezone set to Europe/Berlin."""
    monkeypatch.setenv("TZ", "Europe/Berlin")
    tzlocal.reload_localzone()
    yield
    monkeypatch.undo()
    tzlocal.reload_localzone()


class TestSunriseSunset:

    def test_berlin_in_june(self):
        sunrise, sunset = sunrise_sunset_for(BERLIN_LOCATION, DAY)

        assert sunrise.date() == DAY == sunset.date()
        assert sunrise.tzinfo == BERLIN
        # Around 04:43 and 21:32 local time
        assert 4 <= sunrise.hour <= 5
        assert 21 <= sunset.hour <= 22
        assert sunrise < sunset

    def test_no_location(self):
        with pytest.raises(LocationError):
            sunrise_sunset_for(None, DAY)

    @pytest.mark.parametrize("day", [date(2026, 6, 21), date(2026, 12, 21)])
    def test_polar_day_and_night(self, day):
        with pytest.raises(LocationError):
            sunrise_sunset_for(LONGYEARBYEN, day)


class TestLocationTimezone:

    def test_configured_timezone(self):
        assert location_timezone(BERLIN_LOCATION) == ZoneInfo("Europe/Berlin")

    def test_unknown_timezone_falls_back_to_local(self, caplog):
        tz = location_timezone(LocationConfig(0.0, 0.0, "Mars/Olympus_Mons"))

        assert tz is not None
        assert "Unknown timezone" in caplog.text

    def test_no_location_uses_local(self):
        assert location_timezone(None) is not None

    def test_system_zone_follows_daylight_saving(self, berlin_system_zone):
        tz = location_timezone(None)

        assert datetime(2026, 1, 15, 12, tzinfo=tz).utcoffset() == timedelta(hours=1)
        assert datetime(2026, 7, 15, 12, tzinfo=tz).utcoffset() == timedelta(hours=2)

    def test_waypoints_keep_wall_time_after_switch_to_winter_time(self, berlin_system_zone):
        tz = location_timezone(None)
        schedule_config = ScheduleConfig(name="bedroom", before_sunrise=[TimedValueConfig("07:00", 2700, 40)])

        schedule = schedule_config.schedule_for_day(date(2026, 11, 15), tz)

        waypoint = schedule.waypoints[0].time.astimezone(BERLIN)
        assert (waypoint.hour, waypoint.minute) == (7, 0)
        assert waypoint.utcoffset() == timedelta(hours=1)
