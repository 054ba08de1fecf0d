from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

"""
All stored datetimes are UTC-naive. API input may carry 'Z' or an offset and
is normalized on the way in; output is serialized with a trailing 'Z'.
"""


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-01-31", "2026-01-31T10:00", "...Z" or "...+02:00" -> UTC-naive datetime.

    A bare date is midnight UTC. Raises ValueError on anything else.
    """
    raw = _blank_to_none(value)
    if raw is None:
        return None
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"

    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    raw = _blank_to_none(value)
    return date.fromisoformat(raw) if raw else None


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Inclusive start / exclusive end of a UTC calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with 'Z'; naive values are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
