"""Time-of-day interval arithmetic.

All intervals are half-open ``[start, end)`` on a single calendar day. A day
never wraps: the last instant a booking may end at is ``23:59:59``.
"""
from datetime import time as dt_time

END_OF_DAY = dt_time(23, 59, 59)
MIDNIGHT = dt_time(0, 0, 0)
MINUTES_PER_DAY = 24 * 60


def overlaps(s1: dt_time, e1: dt_time, s2: dt_time, e2: dt_time) -> bool:
    """Return True if [s1, e1) and [s2, e2) share any instant."""
    return s1 < e2 and s2 < e1


def normalize_end(end: dt_time) -> dt_time:
    """Map a legacy ``00:00:00`` end time to the end of the same day."""
    if end == MIDNIGHT:
        return END_OF_DAY
    return end


def to_minutes(value: dt_time) -> int:
    """Minutes since midnight. ``23:59:59`` counts as the end of the day (1440)."""
    if value == END_OF_DAY:
        return MINUTES_PER_DAY
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> dt_time:
    """Inverse of :func:`to_minutes`; minute 1440 clamps to ``23:59:59``."""
    if minutes >= MINUTES_PER_DAY:
        return END_OF_DAY
    return dt_time(hour=minutes // 60, minute=minutes % 60)


def duration_minutes(start: dt_time, end: dt_time) -> int:
    return to_minutes(normalize_end(end)) - to_minutes(start)


def format_time(value: dt_time) -> str:
    return value.strftime("%H:%M:%S")


def format_range(start: dt_time, end: dt_time) -> str:
    return f"{format_time(start)} - {format_time(end)}"

