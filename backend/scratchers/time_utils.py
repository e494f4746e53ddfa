from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today_iso() -> str:
    """Business date used when a shift is submitted without an explicit date."""
    return utcnow().date().isoformat()


def parse_shift_date(value: Optional[str]) -> str:
    """
    Normalize a shift date to YYYY-MM-DD.

    - None / "" -> today (UTC)
    - anything that isn't an ISO date raises ValueError
    """
    if value is None:
        return today_iso()
    s = value.strip()
    if not s:
        return today_iso()
    return date.fromisoformat(s[:10]).isoformat()


def baseline_label(now: Optional[datetime] = None) -> str:
    """Shift-date label for a baseline report, unique per creation instant."""
    now = now or utcnow()
    return f"baseline-{now.isoformat(timespec='microseconds')}"


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
