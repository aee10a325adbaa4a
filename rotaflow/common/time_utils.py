from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (aware)."""
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from the database.

    SQLite drops tzinfo on round-trip; PostgreSQL keeps it. Either way the
    result is an aware UTC datetime safe to subtract from ``utcnow()``.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours between two datetimes, rounded to 2 dp."""
    return round((as_utc(end) - as_utc(start)).total_seconds() / 3600, 2)


def whole_minutes(delta: timedelta) -> int:
    """Floor a timedelta to whole minutes."""
    return math.floor(delta.total_seconds() / 60)


def week_bounds(anchor: date) -> tuple[date, date]:
    """Monday-aligned ``(start, end)`` of the week containing *anchor*."""
    start = anchor - timedelta(days=anchor.weekday())
    return start, start + timedelta(days=6)
