"""
Centralized datetime and timezone utilities.

All datetime handling should use these functions to ensure consistency
between timezone-aware and timezone-naive datetimes across the application.
Timestamps are stored as naive local time in the configured timezone.
"""

from datetime import datetime, date, time, timedelta
from typing import Optional, Tuple
import pytz

from config import settings


def get_local_tz() -> pytz.BaseTzInfo:
    """Get the configured local timezone."""
    return pytz.timezone(settings.timezone)


def get_local_now() -> datetime:
    """Get current time in local timezone (naive)."""
    local_tz = get_local_tz()
    return datetime.now(local_tz).replace(tzinfo=None)


def to_naive_local(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert any datetime to naive local time for database storage.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive datetime in local timezone, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is not None:
        local_dt = dt.astimezone(get_local_tz())
        return local_dt.replace(tzinfo=None)

    # Already naive, assume it's in local time
    return dt


def parse_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD string (or a full ISO timestamp) into a date.

    Returns None for empty input. Raises ValueError on garbage.
    """
    if not value:
        return None

    value = value.strip()
    if value.endswith(("z", "Z")):
        value = value[:-1] + "+00:00"

    if len(value) == 10:
        return datetime.strptime(value, "%Y-%m-%d").date()
    return to_naive_local(datetime.fromisoformat(value)).date()


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """[00:00:00.000, 23:59:59.999] of a day as naive local datetimes."""
    start = datetime.combine(day, time.min)
    end = datetime.combine(day, time(23, 59, 59, 999000))
    return start, end


def week_bounds(day: date) -> Tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59.999 of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    start, _ = day_bounds(monday)
    _, end = day_bounds(monday + timedelta(days=6))
    return start, end


def month_bounds(day: date) -> Tuple[datetime, datetime]:
    """First through last day of the month containing ``day``."""
    first = day.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    start, _ = day_bounds(first)
    _, end = day_bounds(next_first - timedelta(days=1))
    return start, end


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds between two datetimes, never negative."""
    delta = end - start
    ms = (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
    return max(ms, 0)
