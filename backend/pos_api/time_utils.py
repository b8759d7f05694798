"""
Timestamps are stored as naive UTC and serialized with a trailing 'Z'.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.min)


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Query-string / payload timestamp to naive UTC.

    Accepts "YYYY-MM-DD", naive datetimes (read as UTC), "...Z" and
    "...+HH:MM" offsets. A bare date means midnight, or the last instant of
    that day when end_of_day is set (inclusive upper bounds).
    Blank input gives None; anything else unparseable raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None

    if len(text) == 10:
        day = date.fromisoformat(text)
        return datetime.combine(day, time.max if end_of_day else time.min)

    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    stamp = _as_naive_utc(dt).replace(microsecond=0)
    return stamp.isoformat() + "Z"
