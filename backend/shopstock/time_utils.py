# Overview: UTC timestamps for stock rows and the date filters of sale listings.

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC, the form stock and sale timestamps are stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Query-string timestamp -> naive UTC datetime; None when absent.

    Accepts "2026-10-16", "2026-10-16T09:30", "...Z" and "...+02:00"; naive
    input is already UTC. With end_of_day, a bare date is an inclusive upper
    bound and covers the whole day.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if end_of_day and len(text) == 10:
        parsed += timedelta(days=1, microseconds=-1)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Column value -> "2026-10-16T09:30:00Z" for JSON bodies."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
