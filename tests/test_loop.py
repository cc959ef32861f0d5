"""Tests for the control loop."""

import logging
from datetime import timedelta
from unittest.mock import Mock, patch

import pytest

from hue_daylight.config import DaylightConfig, LocationConfig, ScheduleConfig, TimedValueConfig
from hue_daylight.control import LIGHT_UPDATE, ROLLOVER, STATE_UPDATE, ControlContext, ControlLoop
from hue_daylight.control.loop import next_midnight
from hue_daylight.errors import BridgeError, ConfigurationError, LocationError, ScheduleInvariantError
from hue_daylight.lights import LightInfo, LightState
from hue_daylight.schedule import LightValues

from conftest import BERLIN, DAY, FakeClock, at

TOMORROW = DAY + timedelta(days=1)


def create_loop(config, bridge, start, **kwargs):
    clock = FakeClock(start)
    context = ControlContext(config=config, bridge=bridge, tz=BERLIN)
    loop = ControlLoop(context, now=clock.now, wait=clock.wait, **kwargs)
    return loop, clock


class TestStart:

    def test_registers_all_lights(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(12))

        loop.start()

        assert set(loop.context.lights) == {"mock-1", "mock-2", "mock-3"}
        assert loop.state == "running"

    def test_schedules_associated_lights_only(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(12))

        loop.start()

        lights = loop.context.lights
        assert lights["mock-1"].scheduled
        assert lights["mock-1"].target == LightValues(3133, 60)
        assert lights["mock-2"].scheduled
        assert not lights["mock-3"].scheduled
        assert lights["mock-3"].target is None

    def test_arms_timers(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(12))

        loop.start()

        assert loop.next_rollover == at(0, day=TOMORROW)
        assert loop.next_state_update == at(12, 1)
        assert loop.next_light_update == at(12, 0, 1)

    def test_bridge_unavailable_at_start(self, config, bridge):
        bridge.lights = Mock(side_effect=BridgeError("unreachable"))
        loop, _ = create_loop(config, bridge, at(12))

        loop.start()

        assert loop.context.lights == {}
        assert loop.state == "running"


class TestEventOrder:
    """One timer branch per iteration, rollover before state before light."""

    def test_first_iteration_is_light_update(self, config, bridge):
        loop, clock = create_loop(config, bridge, at(12))
        loop.start()

        assert loop.run_once() == LIGHT_UPDATE
        assert clock.waits == [1.0]
        assert sorted(bridge.pushed) == [("mock-1", 3133, 60), ("mock-2", 3133, 60)]

    def test_state_update_wins_tie_with_light_update(self, config, bridge):
        loop, clock = create_loop(config, bridge, at(12))
        loop.start()

        events = [loop.run_once() for _ in range(61)]

        assert events[:59] == [LIGHT_UPDATE] * 59
        assert events[59:] == [STATE_UPDATE, LIGHT_UPDATE]
        assert clock.now() == at(12, 1)

    def test_rollover_wins_tie_at_midnight(self, config, bridge):
        loop, clock = create_loop(config, bridge, at(23, 59, 58))
        loop.start()

        events = [loop.run_once() for _ in range(3)]

        assert events == [LIGHT_UPDATE, ROLLOVER, LIGHT_UPDATE]
        assert loop.context.lights["mock-1"].schedule.day == TOMORROW
        assert loop.next_rollover == at(0, day=TOMORROW + timedelta(days=1))

    def test_next_event_priority(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        loop.next_rollover = loop.next_state_update = loop.next_light_update = at(13)

        assert loop.next_event() == (ROLLOVER, at(13))

        loop.next_rollover = at(14)
        assert loop.next_event() == (STATE_UPDATE, at(13))

    def test_missed_ticks_are_dropped(self):
        interval = timedelta(seconds=1)

        assert ControlLoop._advance(at(12), interval, at(12)) == at(12, 0, 1)
        assert ControlLoop._advance(at(12), interval, at(12, 0, 10)) == at(12, 0, 11)

    def test_next_midnight(self):
        assert next_midnight(at(0)) == at(0, day=TOMORROW)
        assert next_midnight(at(23, 59, 59)) == at(0, day=TOMORROW)


class TestDayBoundary:

    def test_out_of_range_then_rollover(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(23, 59))
        loop.start()

        loop.update_targets(at(23, 59, 59, microsecond=500_000))
        light = loop.context.lights["mock-1"]
        assert not light.scheduled
        assert light.target is None

        loop.update_lights(at(23, 59, 59, microsecond=600_000))
        assert bridge.pushed == []

        loop.update_schedules(at(0, day=TOMORROW))
        assert light.scheduled
        assert light.schedule.day == TOMORROW
        assert light.target == LightValues(2700, 40)


class TestIsolation:
    """A failing light must not stop the others."""

    def test_missing_state_skips_only_that_light(self, config, bridge, caplog):
        caplog.set_level(logging.WARNING)
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        states = bridge.light_states()
        del states["mock-1"]
        bridge.light_states = Mock(return_value=states)

        loop.update_lights(at(12, 0, 1))

        assert bridge.pushed == [("mock-2", 3133, 60)]
        assert "No current light state found for light Mock Light 1" in caplog.text

    def test_push_failure_skips_only_that_light(self, config, bridge, caplog):
        caplog.set_level(logging.WARNING)
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        set_light_state = bridge.set_light_state

        def failing_set_light_state(light_id, color_temperature, brightness):
            if light_id == "mock-1":
                raise BridgeError("timeout")
            set_light_state(light_id, color_temperature, brightness)

        bridge.set_light_state = failing_set_light_state

        loop.update_lights(at(12, 0, 1))

        assert bridge.pushed == [("mock-2", 3133, 60)]
        assert "Could not update state" in caplog.text

    def test_batch_read_failure_skips_tick(self, config, bridge, caplog):
        caplog.set_level(logging.WARNING)
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        bridge.light_states = Mock(side_effect=BridgeError("timeout"))

        assert loop.run_once() == LIGHT_UPDATE
        assert bridge.pushed == []
        assert "Could not read light states" in caplog.text

    def test_unexpected_push_error_skips_only_that_light(self, config, bridge, caplog):
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        loop.context.lights["mock-1"].update = Mock(side_effect=RuntimeError("boom"))

        assert loop.run_once() == LIGHT_UPDATE
        assert bridge.pushed == [("mock-2", 3133, 60)]
        assert "Update failed" in caplog.text

    def test_unexpected_error_is_logged_not_raised(self, config, bridge, caplog):
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        light = loop.context.lights["mock-1"]
        light.update_interval = Mock(side_effect=RuntimeError("boom"))

        loop.update_targets(at(12, 1))

        assert "Update failed" in caplog.text
        assert loop.context.lights["mock-2"].target == LightValues(3135, 60)


class TestNewLights:

    def test_light_appearing_on_bridge_is_registered(self, config, bridge, schedule_config):
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        schedule_config.associated_devices.append("mock-4")
        bridge.add_light(
            LightInfo("mock-4", "Mock Light 4", 2000, 6500),
            LightState(on=True, brightness=100, color_temperature=4000),
        )

        loop.update_lights(at(12, 0, 1))

        assert "mock-4" in loop.context.lights
        assert loop.context.lights["mock-4"].scheduled
        assert ("mock-4", 3133, 60) in bridge.pushed


class TestScheduleInvariant:

    def _corrupt(self, loop):
        light = loop.context.lights["mock-1"]
        corrupt = Mock()
        corrupt.has_waypoints.return_value = True
        corrupt.current_interval.side_effect = ScheduleInvariantError("interval bounds on different days")
        light.schedule = corrupt
        return light

    def test_strict_mode_propagates(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        self._corrupt(loop)

        with pytest.raises(ScheduleInvariantError):
            loop.update_targets(at(12, 1))

    def test_lenient_mode_rebuilds_schedule(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(12), strict=False)
        loop.start()
        light = self._corrupt(loop)

        loop.update_targets(at(12, 1))

        assert light.scheduled
        assert light.schedule.day == DAY
        assert light.target == LightValues(3135, 60)


class TestRequests:

    def test_reload_rebuilds_schedules(self, config, bridge):
        reloaded = DaylightConfig(
            location=LocationConfig(52.52, 13.405, "Europe/Berlin"),
            intervals=config.intervals,
            schedules=[
                ScheduleConfig(
                    name="everything",
                    associated_devices=["mock-1", "mock-2", "mock-3"],
                    before_sunrise=[TimedValueConfig("06:00", 2000, 20)],
                    after_sunset=[TimedValueConfig("18:00", 2000, 20)],
                )
            ],
        )
        clock = FakeClock(at(12))
        context = ControlContext(config=config, bridge=bridge, tz=BERLIN)
        loop = ControlLoop(context, config_loader=lambda: reloaded, now=clock.now, wait=clock.wait)
        loop.start()

        loop.request_reload()
        with patch("hue_daylight.control.loop.sunrise_sunset_for", side_effect=LocationError("polar day")):
            loop.run_once()

        assert loop.context.config is reloaded
        assert loop.context.tz == BERLIN
        assert loop.context.lights["mock-3"].target == LightValues(2000, 20)

    def test_failed_reload_keeps_configuration(self, config, bridge, caplog):
        clock = FakeClock(at(12))
        context = ControlContext(config=config, bridge=bridge, tz=BERLIN)
        loop = ControlLoop(
            context,
            config_loader=Mock(side_effect=ConfigurationError("bad yaml")),
            now=clock.now,
            wait=clock.wait,
        )
        loop.start()

        loop.request_reload()
        loop.run_once()

        assert loop.context.config is config
        assert "Reload failed" in caplog.text

    def test_enable_request(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()
        loop.context.lights["mock-1"].manually_controlled = True

        loop.request_enable("mock-1")
        loop.run_once()

        assert not loop.context.lights["mock-1"].manually_controlled

    def test_request_interrupts_default_wait(self, config, bridge):
        clock = FakeClock(at(12))
        loop = ControlLoop(ControlContext(config=config, bridge=bridge, tz=BERLIN), now=clock.now)
        loop.start()

        loop.request_enable("mock-2")

        assert loop.run_once() is None


class TestRun:

    def test_run_until_stopped(self, config, bridge):
        loop, clock = create_loop(config, bridge, at(12))

        def stop_after_three():
            if len(clock.waits) == 3:
                loop.stop()

        clock.on_wait = stop_after_three

        loop.run()

        assert loop.stopped
        assert len(clock.waits) == 3
        assert clock.now() == at(12, 0, 3)

    def test_status(self, config, bridge):
        loop, _ = create_loop(config, bridge, at(12))
        loop.start()

        status = loop.status()

        assert [light["id"] for light in status] == ["mock-1", "mock-2", "mock-3"]


def test_sun_times_computed_once_per_day(bridge):
    config = DaylightConfig(location=LocationConfig(52.52, 13.405, "Europe/Berlin"))
    loop, _ = create_loop(config, bridge, at(12))
    sun = (at(5), at(21, 30))

    with patch("hue_daylight.control.loop.sunrise_sunset_for", return_value=sun) as sunrise_sunset:
        assert loop.sun_times(DAY) == sun
        assert loop.sun_times(DAY) == sun
        loop.sun_times(TOMORROW)

    assert sunrise_sunset.call_count == 2
