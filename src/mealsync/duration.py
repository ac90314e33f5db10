"""Duration parsing utilities."""

import re
from datetime import timedelta

from mealsync.types import Duration

_PART_PATTERN = re.compile(r"(\d+)(ms|s|m|h|d)")
_DURATION_PATTERN = re.compile(r"^(?:\d+(?:ms|s|m|h|d))+$")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration(duration: Duration) -> int:
    """Parse a duration to milliseconds.

    Accepts integer milliseconds, a ``timedelta``, or a string such as
    ``"250ms"``, ``"30s"``, ``"5m"`` or ``"1m30s"``.
    """
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, int):
        if duration < 0:
            raise ValueError(f"Duration must not be negative: {duration!r}")
        return duration
    if isinstance(duration, timedelta):
        if duration < timedelta(0):
            raise ValueError(f"Duration must not be negative: {duration!r}")
        return int(duration.total_seconds() * 1000)

    text = duration.strip()
    if not _DURATION_PATTERN.match(text):
        raise ValueError(f"Invalid duration: {duration!r}")

    return sum(int(value) * _UNITS[unit] for value, unit in _PART_PATTERN.findall(text))
