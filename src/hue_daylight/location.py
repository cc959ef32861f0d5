"""Sunrise and sunset for the configured location."""

from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from astral import LocationInfo
from astral.sun import sunrise, sunset
from tzlocal import get_localzone

from .config.schema import LocationConfig
from .errors import LocationError

logger = logging.getLogger(__name__)


def location_timezone(location: LocationConfig | None) -> tzinfo:
    """
    Timezone all schedules are built in.

    Uses the location's timezone when configured, otherwise the system's
    local zone. Both follow daylight saving time.
    """
    if location is not None and location.timezone:
        try:
            return ZoneInfo(location.timezone)
        except ZoneInfoNotFoundError:
            logger.warning("Unknown timezone '%s', falling back to system local", location.timezone)
    return get_localzone()


def sunrise_sunset_for(location: LocationConfig | None, day: date) -> tuple[datetime, datetime]:
    """
    Compute sunrise and sunset of day at location.

    Args:
        location: Configured location, or None
        day: Calendar day to compute for

    Returns:
        Tuple of (sunrise, sunset) as aware datetimes in the location's timezone

    Raises:
        LocationError: No location configured, or the sun does not rise or
            set on that day (polar day or night)
    """
    if location is None:
        raise LocationError("No location configured, sunrise and sunset are unknown")

    tz = location_timezone(location)
    info = LocationInfo(latitude=location.latitude, longitude=location.longitude)
    try:
        rise = sunrise(info.observer, date=day, tzinfo=tz)
        set_ = sunset(info.observer, date=day, tzinfo=tz)
    except ValueError as e:
        raise LocationError(f"No sunrise or sunset on {day.isoformat()}: {e}") from e

    # astral may return the event of a neighbouring day near the poles
    if rise.date() != day or set_.date() != day:
        raise LocationError(
            f"Sunrise {rise.isoformat()} or sunset {set_.isoformat()} is not on {day.isoformat()}"
        )

    logger.debug("Sunrise %s, sunset %s on %s", f"{rise:%H:%M}", f"{set_:%H:%M}", day.isoformat())
    return rise, set_
