"""Datetime utilities for common operations."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Make a datetime timezone aware.

    Naive values (as returned by SQLite) are taken to be UTC; aware values
    are converted to UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string of a UTC-normalised datetime, or None."""
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None


def split_range(
    start: datetime, end: datetime, parts: int
) -> list[tuple[datetime, datetime]]:
    """
    Split ``[start, end)`` into ``parts`` contiguous, equal-length intervals.

    The last interval always ends exactly at ``end`` so that rounding of the
    per-part duration never leaves a gap.

    Args:
        start: Range start
        end: Range end (exclusive)
        parts: Number of intervals, at least 1

    Returns:
        List of (start, end) tuples in chronological order

    Raises:
        ValueError: If the range is empty or parts < 1
    """
    if parts < 1:
        raise ValueError("Number of slots must be at least 1")
    start = ensure_utc(start)
    end = ensure_utc(end)
    if end <= start:
        raise ValueError("End time must be after start time")

    duration: timedelta = (end - start) / parts
    intervals = []
    for i in range(parts):
        slot_start = start + duration * i
        slot_end = end if i == parts - 1 else start + duration * (i + 1)
        intervals.append((slot_start, slot_end))
    return intervals
