"""
Date/time helpers — framework-agnostic.

Expiry decisions are always made by comparing against an explicit ``now``;
these helpers make sure both sides of that comparison are UTC-aware.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes (as returned by a Mongo client without ``tz_aware``)
    are assumed to already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_past(moment: datetime, now: datetime) -> bool:
    """True when *moment* is at or before *now*."""
    return ensure_utc(moment) <= ensure_utc(now)
