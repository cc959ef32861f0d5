"""Exception hierarchy for hue-daylight."""


class DaylightError(Exception):
    """Base class for all hue-daylight errors."""


class ScheduleOutOfRangeError(DaylightError):
    """The requested instant lies after the end of the schedule's day.

    Expected once per day. The caller must build a schedule for the new day.
    """


class ScheduleInvariantError(DaylightError):
    """A schedule could not bracket an instant within its own day.

    This means the schedule was constructed incorrectly. It is fatal by
    default; the control loop can be told to rebuild instead.
    """


class BridgeError(DaylightError):
    """Communication with the Hue bridge failed."""


class LocationError(DaylightError):
    """Sunrise and sunset cannot be determined."""


class ConfigurationError(DaylightError):
    """The configuration file is invalid."""
