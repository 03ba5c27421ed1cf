"""
Centralized timestamp utilities.

Every persisted timestamp is an integer count of milliseconds since the Unix
epoch (UTC). All conversions between datetimes and stored values go through
these functions.
"""

import time
from datetime import datetime
from typing import Optional, Union

import pytz

ONE_HOUR_MS = 60 * 60 * 1000
ONE_DAY_MS = 24 * ONE_HOUR_MS
ONE_WEEK_MS = 7 * ONE_DAY_MS


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_epoch_ms(dt: datetime) -> int:
    """
    Convert a datetime to epoch milliseconds.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return int(dt.timestamp() * 1000)


def from_epoch_ms(value: Optional[int]) -> Optional[datetime]:
    """Convert epoch milliseconds to a timezone-aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=pytz.UTC)


def parse_due_date(value: Union[int, str, None]) -> Optional[int]:
    """
    Normalize a due date into epoch milliseconds.

    Handles:
    - Epoch milliseconds (int or numeric string): returned as-is
    - ISO format with or without timezone: "2026-01-18T19:00:00+07:00"
    - Date only: "2026-01-18" (end of that day, UTC)

    Returns:
        Epoch milliseconds, or None when no value was given

    Raises:
        ValueError: If the string cannot be parsed
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value

    raw = value.strip()
    if not raw:
        return None
    if raw.lstrip("-").isdigit():
        return int(raw)

    try:
        dt = datetime.strptime(raw, "%Y-%m-%d")
        return to_epoch_ms(dt.replace(hour=23, minute=59, second=59))
    except ValueError:
        pass

    # Handle 'Z' suffix (UTC)
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"

    try:
        return to_epoch_ms(datetime.fromisoformat(raw))
    except ValueError:
        raise ValueError(f"Unrecognized due date: {value!r}")
