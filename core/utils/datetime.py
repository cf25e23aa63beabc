"""Datetime utilities for report ranges and elapsed-time metrics."""

from datetime import datetime, date, time, timedelta, timezone
from typing import Optional
import re

ISO_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Return an aware UTC datetime.

    Naive values (as returned by backends without timezone support) are taken
    to already be in UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a strict ``YYYY-MM-DD`` string.

    Args:
        value: Date string or None

    Returns:
        Parsed date, or None when no value was given

    Raises:
        ValueError: If the value is not an ISO calendar date
    """
    if value is None or value == "":
        return None
    message = f"Invalid date '{value}', expected YYYY-MM-DD"
    if not ISO_DATE_PATTERN.fullmatch(value):
        raise ValueError(message)
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(message) from None


def start_of_day(d: date) -> datetime:
    """Midnight UTC at the start of the given day."""
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def start_of_next_day(d: date) -> datetime:
    """Midnight UTC at the start of the following day (exclusive upper bound)."""
    return start_of_day(d + timedelta(days=1))


def hours_between(start: datetime, end: datetime) -> float:
    """
    Elapsed hours from start to end.

    Args:
        start: Start datetime
        end: End datetime

    Returns:
        Hours as float, negative if end precedes start
    """
    delta = ensure_utc(end) - ensure_utc(start)
    return delta.total_seconds() / 3600
