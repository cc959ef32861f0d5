"""Validation of the local clock, the basis of all schedule calculations."""

from datetime import datetime, timezone
from typing import Callable, Optional, Protocol
import logging

from ..errors import BridgeError

logger = logging.getLogger(__name__)

MAX_CLOCK_OFFSET_SECONDS = 60


class ClockSource(Protocol):
    def bridge_time(self) -> datetime:
        ...


def validate_system_time(
    source: ClockSource,
    now: Optional[Callable[[], datetime]] = None,
    max_offset: float = MAX_CLOCK_OFFSET_SECONDS,
) -> Optional[bool]:
    """
    Compare the local clock with the bridge's clock.

    Returns:
        True if the clocks agree within max_offset seconds, False if not,
        None if the bridge time could not be read
    """
    try:
        reference = source.bridge_time()
    except BridgeError as e:
        logger.warning("Could not validate local system time: %s", e)
        return None

    local = (now or (lambda: datetime.now(timezone.utc)))()
    offset = abs(local.timestamp() - reference.timestamp())
    if offset > max_offset:
        logger.warning(
            "Your local system time seems to be %.0f seconds off. Timings may be inaccurate.",
            offset,
        )
        return False

    logger.debug("Local system time validated.")
    return True
