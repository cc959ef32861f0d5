"""
Per-light controller.

A Light owns the schedule of one fixture, derives the interval active at a
given instant, interpolates the target values within it and pushes them to
the bridge when the fixture shows something else.

Manual control:
    When the observed state of a light that stayed on drifts away from what
    was last pushed, someone changed it by hand (switch, app). The light is
    then left alone until it appears again, i.e. is switched off and back on.
    On appearance, enable_when_lights_appear decides whether automatic
    control resumes.
"""

from datetime import datetime
from typing import Optional, Protocol
import logging

from ..errors import ScheduleOutOfRangeError
from ..schedule import Interval, LightValues, Schedule
from .state import LightInfo, LightState

logger = logging.getLogger(__name__)


class LightWriter(Protocol):
    def set_light_state(self, light_id: str, color_temperature: Optional[int], brightness: Optional[int]) -> None:
        ...


class Light:
    """Schedule, interval and target state of one fixture."""

    def __init__(self, info: LightInfo, bridge: LightWriter):
        self.info = info
        self._bridge = bridge

        self.schedule: Optional[Schedule] = None
        self.interval: Optional[Interval] = None
        self.scheduled = False
        self.target: Optional[LightValues] = None

        self.current: Optional[LightState] = None
        self._previous: Optional[LightState] = None
        self._last_pushed: Optional[LightValues] = None
        self.manually_controlled = False

    @property
    def id(self) -> str:
        return self.info.id

    @property
    def name(self) -> str:
        return self.info.name

    def update_schedule(self, schedule: Schedule) -> None:
        """
        Replace the schedule and mark the light as scheduled.

        A schedule without any waypoint leaves the light unscheduled.
        """
        self.schedule = schedule
        self.scheduled = schedule.has_waypoints()
        self.interval = None
        if not self.scheduled:
            logger.info("Light %s - No waypoints for %s, not scheduling", self.name, schedule.day)
            return
        logger.debug("Light %s - Schedule for %s with %d waypoints", self.name, schedule.day, len(schedule.waypoints))

    def clear_schedule(self) -> None:
        """Take the light out of automatic control."""
        self.schedule = None
        self.interval = None
        self.target = None
        self.scheduled = False

    def update_interval(self, now: datetime) -> Optional[Interval]:
        """
        Look up the interval active at now.

        A schedule that ended leaves the light unscheduled until the next
        schedule arrives. ScheduleInvariantError propagates.
        """
        if self.schedule is None or not self.schedule.has_waypoints():
            self.scheduled = False
            return None

        try:
            self.interval = self.schedule.current_interval(now)
        except ScheduleOutOfRangeError as e:
            logger.debug("Light %s - %s", self.name, e)
            self.interval = None
            self.target = None
            self.scheduled = False
            return None

        self.scheduled = True
        return self.interval

    def update_target_light_state(self, now: datetime) -> Optional[LightValues]:
        """Interpolate the target values at now within the current interval."""
        if not self.scheduled or self.interval is None:
            self.target = None
            return None

        self.target = self.info.clamp(self.interval.interpolate(now))
        logger.debug("Light %s - Target %dK, %d%% in %s", self.name, self.target.color_temperature, self.target.brightness, self.interval)
        return self.target

    def update_current_light_state(self, observed: LightState) -> None:
        """Record the latest reading from the bridge."""
        self._previous = self.current
        self.current = observed

    @property
    def appeared(self) -> bool:
        """The light was switched on (or came back in reach) since the last reading."""
        if self.current is None or self._previous is None:
            return False
        return self.current.visible and not self._previous.visible

    def enable(self) -> None:
        """Resume automatic control."""
        if self.manually_controlled:
            logger.info("Light %s - Automatic control enabled", self.name)
        self.manually_controlled = False
        self._last_pushed = None

    def _shows(self, values: LightValues) -> bool:
        return self.current.matches(values, self.info.supports_color_temperature, self.info.supports_brightness)

    def _detect_manual_change(self) -> None:
        if self._last_pushed is None or self.current is None:
            return
        if not self._shows(self._last_pushed):
            logger.info("Light %s - Changed manually, disabling automatic control", self.name)
            self.manually_controlled = True

    def update(self) -> bool:
        """
        Push the target state if the light shows something else.

        Returns:
            True if a state change was sent to the bridge

        Raises:
            BridgeError: If the push fails
        """
        if not self.scheduled or self.target is None or self.current is None:
            return False

        if not self.current.visible:
            self._last_pushed = None
            return False

        if self.appeared:
            enable = self.schedule is None or self.schedule.enable_when_lights_appear
            if enable:
                self.enable()
            else:
                logger.info("Light %s - Appeared, leaving it under manual control", self.name)
                self.manually_controlled = True
        else:
            self._detect_manual_change()

        if self.manually_controlled:
            return False

        if self._shows(self.target):
            self._last_pushed = self.target
            return False

        color_temperature = self.target.color_temperature if self.info.supports_color_temperature else None
        brightness = self.target.brightness if self.info.supports_brightness else None
        self._bridge.set_light_state(self.id, color_temperature, brightness)
        self._last_pushed = self.target
        logger.debug("Light %s - Pushed %sK, %s%%", self.name, color_temperature, brightness)
        return True

    def status(self) -> dict:
        """Snapshot for the web interface."""
        return {
            "id": self.id,
            "name": self.name,
            "scheduled": self.scheduled,
            "manually_controlled": self.manually_controlled,
            "interval": None if self.interval is None else {
                "start": _timestamp_status(self.interval.start),
                "end": _timestamp_status(self.interval.end),
            },
            "target": None if self.target is None else self.target._asdict(),
            "current": None if self.current is None else {
                "on": self.current.on,
                "reachable": self.current.reachable,
                "color_temperature": self.current.color_temperature,
                "brightness": self.current.brightness,
            },
        }


def _timestamp_status(timestamp) -> dict:
    values = timestamp.values
    return {
        "time": timestamp.time.isoformat(),
        "color_temperature": None if values is None else values.color_temperature,
        "brightness": None if values is None else values.brightness,
    }
