"""
The schedule of one calendar day and the interval lookup on it.

A Schedule holds every waypoint of a day (configured times plus the optional
sunrise and sunset markers). current_interval() brackets an instant between
the closest waypoint at or before it and the closest waypoint after it.

Two synthetic waypoints without light values are added for the start
(00:00:00) and the end (23:59:59) of the instant's day, so that every instant
of the day has a bracket. An unresolved bound takes the values of the
opposite bound, which holds the first waypoint's values flat until it is
reached and the last waypoint's values flat after it has passed.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable
import logging

from ..errors import ScheduleInvariantError, ScheduleOutOfRangeError
from .types import Interval, TimeStamp

logger = logging.getLogger(__name__)


def start_of_day(moment: datetime) -> datetime:
    """00:00:00 of the calendar day of moment, in moment's timezone."""
    return datetime.combine(moment.date(), time(0, 0, 0), tzinfo=moment.tzinfo)


def end_of_day(moment: datetime) -> datetime:
    """23:59:59 of the calendar day of moment, in moment's timezone."""
    return datetime.combine(moment.date(), time(23, 59, 59), tzinfo=moment.tzinfo)


def _local_date(moment: datetime, reference: datetime) -> date:
    """Calendar date of moment as seen in reference's timezone."""
    return moment.astimezone(reference.tzinfo).date()


@dataclass(frozen=True)
class Schedule:
    """
    All waypoints of one calendar day.

    Attributes:
        end_of_day: Last instant this schedule is valid for
        sunrise: Sunrise marker, None when no location is configured
        sunset: Sunset marker, None when no location is configured
        enable_when_lights_appear: Take control of lights as they are switched on
        target_times: All other waypoints of the day, in any order
    """
    end_of_day: datetime
    sunrise: TimeStamp | None = None
    sunset: TimeStamp | None = None
    enable_when_lights_appear: bool = True
    target_times: tuple[TimeStamp, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'target_times', tuple(self.target_times))

        day = self.day
        for waypoint in self.waypoints:
            if _local_date(waypoint.time, self.end_of_day) != day:
                raise ValueError(
                    f"Waypoint {waypoint} is not on the schedule's day {day.isoformat()}"
                )

    @classmethod
    def for_day(
        cls,
        day: date,
        tz,
        target_times: Iterable[TimeStamp] = (),
        sunrise: TimeStamp | None = None,
        sunset: TimeStamp | None = None,
        enable_when_lights_appear: bool = True,
    ) -> "Schedule":
        """Create a schedule ending at 23:59:59 of day in timezone tz."""
        return cls(
            end_of_day=datetime.combine(day, time(23, 59, 59), tzinfo=tz),
            sunrise=sunrise,
            sunset=sunset,
            enable_when_lights_appear=enable_when_lights_appear,
            target_times=tuple(target_times),
        )

    @property
    def day(self) -> date:
        """The calendar day this schedule was built for."""
        return self.end_of_day.date()

    @property
    def waypoints(self) -> list[TimeStamp]:
        """Configured waypoints plus sunrise and sunset, sorted by time."""
        points = list(self.target_times)
        if self.sunrise is not None:
            points.append(self.sunrise)
        if self.sunset is not None:
            points.append(self.sunset)
        return sorted(points, key=lambda point: point.time.timestamp())

    def has_waypoints(self) -> bool:
        return any(point.resolved for point in self.waypoints)

    def current_interval(self, timestamp: datetime) -> Interval:
        """
        Find the interval of this day that brackets timestamp.

        Args:
            timestamp: Timezone-aware instant to look up

        Returns:
            Interval whose bounds both carry light values

        Raises:
            ScheduleOutOfRangeError: timestamp lies after end_of_day
            ScheduleInvariantError: the bracket is not on timestamp's day, or
                the schedule has no waypoint with light values
        """
        if timestamp.timestamp() > self.end_of_day.timestamp():
            raise ScheduleOutOfRangeError(
                f"No current interval as {timestamp.isoformat()} lies after "
                f"the end of the schedule ({self.end_of_day.isoformat()})"
            )

        candidates = self.waypoints + [
            TimeStamp(start_of_day(timestamp)),
            TimeStamp(end_of_day(timestamp)),
        ]
        before, after = find_bracket(timestamp, candidates)

        # Unresolved bounds hold the opposite bound's values
        if before.values is None:
            before = before.with_values(after.values)
        if after.values is None:
            after = after.with_values(before.values)
        if before.values is None:
            raise ScheduleInvariantError(
                f"Schedule for {self.day.isoformat()} has no waypoints with light values"
            )

        return Interval(before, after)


def find_bracket(timestamp: datetime, candidates: list[TimeStamp]) -> tuple[TimeStamp, TimeStamp]:
    """
    Closest-bracket search.

    Returns the latest candidate at or before timestamp and the earliest
    candidate strictly after it. When nothing on timestamp's day lies after
    it (timestamp sits exactly on the day's last candidate), the bracket is
    the latest candidate strictly before timestamp and that last candidate.
    On equal instants a resolved candidate wins over an unresolved one.

    Raises:
        ScheduleInvariantError: If either bound is not on timestamp's day
    """
    moment = timestamp.timestamp()
    day = timestamp.date()

    def before_key(candidate: TimeStamp) -> tuple[float, bool]:
        return (candidate.time.timestamp(), candidate.resolved)

    def after_key(candidate: TimeStamp) -> tuple[float, bool]:
        return (candidate.time.timestamp(), not candidate.resolved)

    before = TimeStamp(timestamp - timedelta(days=2))
    after = TimeStamp(timestamp + timedelta(days=2))
    for candidate in candidates:
        if candidate.time.timestamp() <= moment:
            if before_key(candidate) > before_key(before):
                before = candidate
        elif after_key(candidate) < after_key(after):
            after = candidate

    if _local_date(after.time, timestamp) != day and before.time.timestamp() == moment:
        after = before
        before = TimeStamp(timestamp - timedelta(days=2))
        for candidate in candidates:
            if candidate.time.timestamp() < moment and before_key(candidate) > before_key(before):
                before = candidate

    if _local_date(before.time, timestamp) != day or _local_date(after.time, timestamp) != day:
        logger.critical("Could not find the interval for %s in the schedule", timestamp.isoformat())
        raise ScheduleInvariantError(
            f"Could not bracket {timestamp.isoformat()}: found {before} and {after}"
        )

    return before, after
