"""
Oplog positions.

A position is a ``bson.Timestamp``: seconds since the epoch plus an
increment ordering operations within the same second.
"""

import time
from datetime import datetime, timezone
from typing import Optional, Union

from bson import Timestamp

PositionLike = Union[Timestamp, int, float, None]


def from_seconds(seconds: Optional[float] = None) -> Timestamp:
    """
    Build a position at the start of the given second.

    Args:
        seconds: Seconds since the epoch. ``None`` or ``0`` means now.

    Returns:
        Timestamp with increment 0
    """
    if not seconds:
        seconds = time.time()
    return Timestamp(int(seconds), 0)


def from_explicit(value: PositionLike = None) -> Timestamp:
    """
    Wrap a caller supplied resume value.

    A ``Timestamp`` is returned unchanged, numbers are treated as seconds
    and a missing value anchors the position to now.

    Example:
        >>> from_explicit(Timestamp(1700000000, 3))
        Timestamp(1700000000, 3)
    """
    if isinstance(value, Timestamp):
        return value
    if isinstance(value, bool):
        raise TypeError("position must be a Timestamp or a number of seconds")
    if value is None or isinstance(value, (int, float)):
        return from_seconds(value)
    raise TypeError(f"position must be a Timestamp or a number of seconds, got {type(value).__name__}")


get_timestamp = from_explicit


def positions_equal(a: Optional[Timestamp], b: Optional[Timestamp]) -> bool:
    """Compare both the seconds and the increment of two positions."""
    if a is None or b is None:
        return False
    return a.time == b.time and a.inc == b.inc


def parse_since(value: Union[str, float, int, None]) -> Optional[float]:
    """
    Parse a ``since`` value given either as seconds or as an ISO-8601 date.

    Strings containing ``-`` are dates; naive dates are read as UTC.

    Raises:
        ValueError: If the string is neither a number nor a date
    """
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    value = value.strip()
    if "-" in value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    return float(value)
