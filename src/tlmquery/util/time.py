"""
Shared date/time formatting for query bounds and folder matching.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def as_datetime(value: date | datetime) -> datetime:
    """Promote a bare date to local midnight; datetimes pass through."""
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def format_date(instant: date | datetime, time: str | None = None, *, utc: bool = True) -> str:
    """
    Render `instant` as "YYYY-MM-DD", or "YYYY-MM-DD <time>" when `time` is given.

    utc=True reads the calendar fields in UTC (naive instants are local time),
    utc=False reads them in local time.
    """
    dt = as_datetime(instant)
    if utc:
        dt = dt.astimezone(timezone.utc)
    elif dt.tzinfo is not None:
        dt = dt.astimezone()
    day = f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
    if time is not None:
        return f"{day} {time}"
    return day


def iter_days(start: date | datetime, end: date | datetime) -> Iterator[date]:
    """Yield every local calendar day from start to end (inclusive)."""
    d = as_datetime(start)
    if d.tzinfo is not None:
        d = d.astimezone()
    e = as_datetime(end)
    if e.tzinfo is not None:
        e = e.astimezone()
    day = d.date()
    while day <= e.date():
        yield day
        day = day + timedelta(days=1)


def iso_millis_utc(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with milliseconds and a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    v = value.astimezone(timezone.utc)
    return v.strftime("%Y-%m-%dT%H:%M:%S.") + f"{v.microsecond // 1000:03d}Z"
