"""Configuration file loading, migration and saving."""

from datetime import datetime
from pathlib import Path
from typing import Any
import logging

import yaml

from ..errors import ConfigurationError
from .schema import (
    CURRENT_VERSION,
    DaylightConfig,
    HueConfig,
    IntervalConfig,
    LocationConfig,
    ScheduleConfig,
    TimedValueConfig,
    WebConfig,
)

logger = logging.getLogger(__name__)


def migrate_timestamp_format(timestamp: str) -> str:
    """
    Convert a waypoint time to the canonical 24-hour HH:MM form.

    Accepts the 12-hour form older configurations used ("3:04PM") as well as
    HH:MM, which is returned normalized.

    Raises:
        ConfigurationError: If the time matches neither form
    """
    # YAML 1.1 reads unquoted 20:00 as the base-60 integer 1200
    if isinstance(timestamp, int) and not isinstance(timestamp, bool):
        if not 0 <= timestamp < 24 * 60:
            raise ConfigurationError(f"Invalid timestamp format: {timestamp}")
        return f"{timestamp // 60:02d}:{timestamp % 60:02d}"

    text = str(timestamp).strip()
    for layout in ("%I:%M%p", "%I:%M %p"):
        try:
            parsed = datetime.strptime(text.upper(), layout)
        except ValueError:
            continue
        logger.debug("Migrating old timestamp %s to %s", text, f"{parsed:%H:%M}")
        return f"{parsed:%H:%M}"

    try:
        parsed = datetime.strptime(text, "%H:%M")
    except ValueError:
        raise ConfigurationError(f"Invalid timestamp format: {timestamp}") from None
    return f"{parsed:%H:%M}"


def migrate_to_latest_version(data: dict[str, Any]) -> bool:
    """
    Bring raw configuration data up to CURRENT_VERSION in place.

    Returns:
        True if anything was migrated
    """
    version = data.get("version", 0)
    if version >= CURRENT_VERSION:
        return False

    logger.debug("Migrating configuration from version %d to %d", version, CURRENT_VERSION)
    if version == 0:
        _migrate_version0(data)
    data["version"] = CURRENT_VERSION
    logger.debug("Migration of configuration complete")
    return True


def _migrate_version0(data: dict[str, Any]) -> None:
    """Version 0 allowed 12-hour waypoint times."""
    for schedule in data.get("schedules", []) or []:
        for key in ("before_sunrise", "after_sunset"):
            for entry in schedule.get(key, []) or []:
                if "time" in entry:
                    entry["time"] = migrate_timestamp_format(entry["time"])


def _parse_timed_values(entries: list[dict]) -> list[TimedValueConfig]:
    result = []
    for entry in entries or []:
        result.append(TimedValueConfig(
            time=migrate_timestamp_format(entry["time"]),
            color_temperature=int(entry["color_temperature"]),
            brightness=int(entry["brightness"]),
        ))
    return result


def parse_config(data: dict[str, Any]) -> DaylightConfig:
    """Build a DaylightConfig from already loaded YAML data."""
    try:
        # Parse Hue config
        hue = None
        if data.get("hue"):
            hue_data = data["hue"]
            hue = HueConfig(
                bridge_ip=hue_data["bridge_ip"],
                username=hue_data["username"],
                bridge_id=hue_data.get("bridge_id", ""),
            )

        # Parse location
        location = None
        if data.get("location"):
            location_data = data["location"]
            location = LocationConfig(
                latitude=float(location_data["latitude"]),
                longitude=float(location_data["longitude"]),
                timezone=location_data.get("timezone"),
            )

        interval_data = data.get("intervals") or {}
        intervals = IntervalConfig(
            light_update_seconds=float(interval_data.get("light_update_seconds", 1.0)),
            state_update_seconds=float(interval_data.get("state_update_seconds", 60.0)),
        )

        web_data = data.get("web") or {}
        web = WebConfig(
            enabled=bool(web_data.get("enabled", False)),
            host=web_data.get("host", "localhost"),
            port=int(web_data.get("port", 8080)),
        )

        # Parse schedules
        schedules = []
        for schedule_data in data.get("schedules", []) or []:
            schedules.append(ScheduleConfig(
                name=schedule_data["name"],
                associated_devices=[str(device) for device in schedule_data.get("associated_devices", [])],
                enable_when_lights_appear=schedule_data.get("enable_when_lights_appear", True),
                default_color_temperature=int(schedule_data.get("default_color_temperature", 2750)),
                default_brightness=int(schedule_data.get("default_brightness", 100)),
                before_sunrise=_parse_timed_values(schedule_data.get("before_sunrise")),
                after_sunset=_parse_timed_values(schedule_data.get("after_sunset")),
            ))
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e!r}") from e

    if intervals.light_update_seconds <= 0 or intervals.state_update_seconds <= 0:
        raise ConfigurationError("Update intervals must be positive")

    return DaylightConfig(
        hue=hue,
        location=location,
        intervals=intervals,
        web=web,
        schedules=schedules,
        version=data.get("version", CURRENT_VERSION),
    )


def load_config(config_path: Path) -> tuple[DaylightConfig, bool]:
    """
    Load configuration from YAML file.

    Returns:
        Tuple of (config, migrated). migrated is True when the file was in
        an older format and should be saved back.
    """
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} does not contain a mapping")

    migrated = migrate_to_latest_version(data)
    return parse_config(data), migrated


def _timed_values_data(entries: list[TimedValueConfig]) -> list[dict]:
    return [
        {"time": e.time, "color_temperature": e.color_temperature, "brightness": e.brightness}
        for e in entries
    ]


def save_config(config: DaylightConfig, config_path: Path) -> None:
    """Save configuration to YAML file."""
    data: dict[str, Any] = {"version": config.version}

    if config.hue:
        data["hue"] = {
            "bridge_ip": config.hue.bridge_ip,
            "username": config.hue.username,
            "bridge_id": config.hue.bridge_id,
        }

    if config.location:
        data["location"] = {
            "latitude": config.location.latitude,
            "longitude": config.location.longitude,
            "timezone": config.location.timezone,
        }

    data["intervals"] = {
        "light_update_seconds": config.intervals.light_update_seconds,
        "state_update_seconds": config.intervals.state_update_seconds,
    }
    data["web"] = {
        "enabled": config.web.enabled,
        "host": config.web.host,
        "port": config.web.port,
    }
    data["schedules"] = [
        {
            "name": s.name,
            "associated_devices": list(s.associated_devices),
            "enable_when_lights_appear": s.enable_when_lights_appear,
            "default_color_temperature": s.default_color_temperature,
            "default_brightness": s.default_brightness,
            "before_sunrise": _timed_values_data(s.before_sunrise),
            "after_sunset": _timed_values_data(s.after_sunset),
        }
        for s in config.schedules
    ]

    with open(config_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
