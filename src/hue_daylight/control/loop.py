"""
Control loop driving all lights along their daily schedules.

The loop multiplexes three timers over a single wait, and exactly one of
them is handled per iteration:

1. Day rollover (at midnight): rebuild every light's schedule for the new day
2. State update (default every 60s): refresh each light's interval and target
3. Light update (default every second): read all light states in one batch
   and push targets where a light shows something else

When several timers are due at once they are handled in that order, so a
rebuilt schedule is always in place before the next tick reads it. The
rollover fires at the next local midnight rather than at the schedule's
end_of_day (23:59:59), so for that last second lights are unscheduled and
nothing is pushed.

Requests from other threads (reload, enable a light) are applied by the
loop thread between iterations.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Callable, Optional, Protocol
import logging
import queue
import threading

from ..config import DaylightConfig
from ..errors import BridgeError, ConfigurationError, LocationError, ScheduleInvariantError
from ..lights import Light, LightInfo, LightState
from ..location import location_timezone, sunrise_sunset_for

logger = logging.getLogger(__name__)

ROLLOVER = "rollover"
STATE_UPDATE = "state_update"
LIGHT_UPDATE = "light_update"

# Handled in this order when due at the same instant
EVENT_PRIORITY = {ROLLOVER: 0, STATE_UPDATE: 1, LIGHT_UPDATE: 2}


class Bridge(Protocol):
    def lights(self) -> list[LightInfo]:
        ...

    def light_states(self) -> dict[str, LightState]:
        ...

    def set_light_state(self, light_id: str, color_temperature: Optional[int], brightness: Optional[int]) -> None:
        ...


@dataclass
class ControlContext:
    """Everything the loop works on, passed explicitly instead of globals."""
    config: DaylightConfig
    bridge: Bridge
    lights: dict[str, Light] = field(default_factory=dict)
    tz: Optional[tzinfo] = None
    lock: threading.Lock = field(default_factory=threading.Lock)

    def __post_init__(self):
        if self.tz is None:
            self.tz = location_timezone(self.config.location)


def next_midnight(now: datetime) -> datetime:
    """Start of the day after now's day, in now's timezone."""
    return datetime.combine(now.date() + timedelta(days=1), time(0, 0, 0), tzinfo=now.tzinfo)


class ControlLoop:
    """
    Long-running loop keeping all lights on their schedules.

    Args:
        context: Lights, bridge and configuration to work on
        config_loader: Callable returning a fresh configuration on reload
        now: Clock returning the current aware datetime (injectable for tests)
        wait: Callable blocking for the given seconds; returns True when woken
            early. Defaults to an event wait interrupted by stop() and requests.
        strict: Treat a schedule invariant violation as fatal (re-raise).
            When False the light's schedule is rebuilt instead.
    """

    def __init__(
        self,
        context: ControlContext,
        config_loader: Optional[Callable[[], DaylightConfig]] = None,
        now: Optional[Callable[[], datetime]] = None,
        wait: Optional[Callable[[float], bool]] = None,
        strict: bool = True,
    ):
        self.context = context
        self.strict = strict
        self._config_loader = config_loader
        self._now = now or (lambda: datetime.now(self.context.tz))
        self._wakeup = threading.Event()
        self._wait = wait or self._wakeup.wait
        self._stop = threading.Event()
        self._requests: queue.SimpleQueue = queue.SimpleQueue()

        self.state = "initializing"
        self.next_rollover: Optional[datetime] = None
        self.next_state_update: Optional[datetime] = None
        self.next_light_update: Optional[datetime] = None

        self._sun_day: Optional[date] = None
        self._sun_times: Optional[tuple[datetime, datetime]] = None

    @property
    def light_interval(self) -> timedelta:
        return timedelta(seconds=self.context.config.intervals.light_update_seconds)

    @property
    def state_interval(self) -> timedelta:
        return timedelta(seconds=self.context.config.intervals.state_update_seconds)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Discover lights, build their schedules and arm the timers."""
        now = self._now()

        try:
            infos = self.context.bridge.lights()
        except BridgeError as e:
            logger.warning("Could not list lights: %s", e)
            infos = []

        for info in infos:
            self._register(info, now)

        self.next_rollover = next_midnight(now)
        self.next_state_update = now + self.state_interval
        self.next_light_update = now + self.light_interval
        self.state = "running"
        logger.debug("Starting cyclic update for %d lights...", len(self.context.lights))

    def run(self) -> None:
        """Run until stop() is called. ScheduleInvariantError ends the loop in strict mode."""
        if self.state != "running":
            self.start()
        while not self._stop.is_set():
            self.run_once()

    def stop(self) -> None:
        self._stop.set()
        self._wakeup.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def request_reload(self) -> None:
        """Ask the loop thread to reload configuration and rebuild schedules."""
        self._requests.put(("reload", None))
        self._wakeup.set()

    def request_enable(self, light_id: str) -> None:
        """Ask the loop thread to resume automatic control of a light."""
        self._requests.put(("enable", light_id))
        self._wakeup.set()

    # =========================================================================
    # ITERATION
    # =========================================================================

    def next_event(self) -> tuple[str, datetime]:
        """The timer due first, ties broken by EVENT_PRIORITY."""
        deadlines = [
            (ROLLOVER, self.next_rollover),
            (STATE_UPDATE, self.next_state_update),
            (LIGHT_UPDATE, self.next_light_update),
        ]
        return min(deadlines, key=lambda item: (item[1].timestamp(), EVENT_PRIORITY[item[0]]))

    def run_once(self) -> Optional[str]:
        """
        Wait for the next timer and handle it.

        Returns:
            The handled event name, or None if the wait was interrupted
        """
        self._handle_requests()

        event, deadline = self.next_event()
        delay = deadline.timestamp() - self._now().timestamp()
        if delay > 0 and self._wait(delay):
            self._wakeup.clear()
            return None

        now = self._now()
        if event == ROLLOVER:
            logger.info("Day has ended, calculating new schedules")
            self.update_schedules(now)
            self.next_rollover = next_midnight(now)
        elif event == STATE_UPDATE:
            self.update_targets(now)
            self.next_state_update = self._advance(deadline, self.state_interval, now)
        else:
            self.update_lights(now)
            self.next_light_update = self._advance(deadline, self.light_interval, now)
        return event

    @staticmethod
    def _advance(deadline: datetime, interval: timedelta, now: datetime) -> datetime:
        # Drop missed ticks instead of running them back to back
        following = deadline + interval
        if following.timestamp() <= now.timestamp():
            following = now + interval
        return following

    def _handle_requests(self) -> None:
        while True:
            try:
                kind, argument = self._requests.get_nowait()
            except queue.Empty:
                return
            if kind == "reload":
                self.reload()
            elif kind == "enable":
                light = self.context.lights.get(argument)
                if light is None:
                    logger.warning("Cannot enable unknown light %s", argument)
                else:
                    light.enable()

    # =========================================================================
    # TIMER BRANCHES
    # =========================================================================

    def update_schedules(self, now: datetime) -> None:
        """Rebuild the schedule of every light for now's day."""
        for light in list(self.context.lights.values()):
            self._guarded(light, now, self.schedule_light)

    def update_targets(self, now: datetime) -> None:
        """Refresh interval and target of every light."""
        for light in list(self.context.lights.values()):
            self._guarded(light, now, self._update_target)

    def update_lights(self, now: datetime) -> None:
        """Read all light states in one batch and push targets where needed."""
        try:
            states = self.context.bridge.light_states()
        except BridgeError as e:
            logger.warning("Could not read light states: %s", e)
            return

        unknown = [light_id for light_id in states if light_id not in self.context.lights]
        if unknown:
            self._register_new_lights(unknown, now)

        for light in list(self.context.lights.values()):
            state = states.get(light.id)
            if state is None:
                logger.warning("No current light state found for light %s", light.name)
                continue
            light.update_current_light_state(state)
            self._guarded(light, now, self._push)

    # =========================================================================
    # PER-LIGHT WORK
    # =========================================================================

    def schedule_light(self, light: Light, now: datetime) -> None:
        """Build and assign today's schedule for one light."""
        schedule_config = self.context.config.schedule_config_for_light(light.id)
        if schedule_config is None:
            logger.info("Light %s - Light is not associated to any schedule. Ignoring...", light.name)
            light.clear_schedule()
            return

        schedule = schedule_config.schedule_for_day(now.date(), self.context.tz, self.sun_times(now.date()))
        light.update_schedule(schedule)
        self._update_target(light, now)

    @staticmethod
    def _update_target(light: Light, now: datetime) -> None:
        light.update_interval(now)
        light.update_target_light_state(now)

    @staticmethod
    def _push(light: Light, now: datetime) -> None:
        try:
            light.update()
        except BridgeError as e:
            logger.warning("Light %s - Could not update state: %s", light.name, e)

    def _guarded(self, light: Light, now: datetime, work: Callable[[Light, datetime], None]) -> None:
        """Run per-light work so that one light's failure cannot stop the others."""
        try:
            work(light, now)
        except ScheduleInvariantError:
            if self.strict:
                raise
            logger.exception("Light %s - Corrupt schedule, rebuilding", light.name)
            self._rebuild(light, now)
        except Exception:
            logger.exception("Light %s - Update failed", light.name)

    def _rebuild(self, light: Light, now: datetime) -> None:
        light.clear_schedule()
        try:
            self.schedule_light(light, now)
        except ScheduleInvariantError:
            logger.error("Light %s - Rebuilt schedule is still corrupt, leaving light unscheduled", light.name)
            light.clear_schedule()

    def _register(self, info: LightInfo, now: datetime) -> Light:
        light = Light(info, self.context.bridge)
        with self.context.lock:
            self.context.lights[info.id] = light
        logger.info("Light %s - Now managed (%s)", info.name, info.id)
        self._guarded(light, now, self.schedule_light)
        return light

    def _register_new_lights(self, light_ids: list[str], now: datetime) -> None:
        try:
            infos = {info.id: info for info in self.context.bridge.lights()}
        except BridgeError as e:
            logger.warning("Could not read new lights: %s", e)
            return
        for light_id in light_ids:
            if light_id in infos:
                self._register(infos[light_id], now)

    def sun_times(self, day: date) -> Optional[tuple[datetime, datetime]]:
        """Sunrise and sunset of day, computed once per day; None without a location."""
        if day != self._sun_day:
            self._sun_day = day
            try:
                self._sun_times = sunrise_sunset_for(self.context.config.location, day)
            except LocationError as e:
                logger.info("%s. Schedules are built without sunrise and sunset.", e)
                self._sun_times = None
        return self._sun_times

    # =========================================================================
    # RELOAD AND STATUS
    # =========================================================================

    def reload(self) -> None:
        """Reload configuration and rebuild every schedule."""
        if self._config_loader is None:
            logger.warning("Reload requested but no configuration source is set")
            return
        try:
            config = self._config_loader()
        except (ConfigurationError, OSError) as e:
            logger.error("Reload failed, keeping current configuration: %s", e)
            return

        logger.info("Configuration reloaded")
        self.context.config = config
        self.context.tz = location_timezone(config.location)
        self._sun_day = None
        now = self._now()
        self.update_schedules(now)
        self.next_rollover = next_midnight(now)

    def status(self) -> list[dict]:
        """Snapshot of all lights, safe to call from other threads."""
        with self.context.lock:
            lights = list(self.context.lights.values())
        return [light.status() for light in lights]
