from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union


UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso_utc(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime to ISO-8601 in UTC with a ``Z`` suffix."""

    if dt is None:
        return None
    value = ensure_utc(dt)
    return value.isoformat().replace("+00:00", "Z")


def parse_day(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (optionally with a time part) into a date."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative when ``end`` is earlier)."""

    return (end - start).days


def next_wall_clock(now: datetime, hour: int, minute: int = 0) -> datetime:
    """Next local occurrence of ``hour:minute`` strictly after ``now``."""

    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate = candidate + timedelta(days=1)
    return candidate


__all__ = [
    "UTC",
    "days_between",
    "ensure_utc",
    "next_wall_clock",
    "parse_day",
    "to_iso_utc",
    "utc_now",
]
