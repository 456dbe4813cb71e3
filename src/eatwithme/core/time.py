"""
Time helpers.

EatWithMe treats stored timestamps as timezone-aware datetimes (offer expiry,
`created_at`) and uses a millisecond wall clock for event debouncing.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_tz(dt: datetime, tz_name: str) -> datetime:
    """Ensure `dt` has tzinfo; attach `tz_name` if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt


def parse_datetime(value: str, tz_name: str) -> datetime:
    """Parse an ISO-8601 date or datetime string and ensure tzinfo is present.

    Notes:
    - Accepts a trailing `Z` (UTC) and converts it to `+00:00` for `fromisoformat`.
    - A bare date (`2026-03-01`) means midnight in `tz_name`.
    """
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    return ensure_tz(dt, tz_name)
