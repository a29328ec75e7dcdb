"""UTC time helpers.

MongoDB stores dates as UTC without zone information, so the application works
in naive UTC datetimes throughout and normalises anything it reads back.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_utc_day(value: datetime) -> datetime:
    value = as_naive_utc(value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def same_utc_day(a: datetime, b: datetime) -> bool:
    a, b = as_naive_utc(a), as_naive_utc(b)
    return (a.year, a.month, a.day) == (b.year, b.month, b.day)


def relative_time(value: datetime, now: Optional[datetime] = None) -> str:
    """Human friendly age of a timestamp, e.g. ``"3 hours ago"``."""
    now = now or utcnow()
    seconds = int((now - as_naive_utc(value)).total_seconds())

    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    if seconds < 604800:
        return f"{seconds // 86400} days ago"
    return f"{seconds // 604800} weeks ago"
