"""Configuration schema and loading."""

from .schema import (
    DaylightConfig,
    HueConfig,
    IntervalConfig,
    LocationConfig,
    ScheduleConfig,
    TimedValueConfig,
    WebConfig,
)
from .loader import load_config, migrate_timestamp_format, parse_config, save_config

__all__ = [
    "DaylightConfig",
    "HueConfig",
    "IntervalConfig",
    "LocationConfig",
    "ScheduleConfig",
    "TimedValueConfig",
    "WebConfig",
    "load_config",
    "migrate_timestamp_format",
    "parse_config",
    "save_config",
]
