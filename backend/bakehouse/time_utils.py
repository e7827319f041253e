# Overview: UTC timestamp helpers; records store ISO-8601 "Z" strings, comparisons use naive UTC datetimes.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: datetime) -> datetime:
    """Aware datetimes are shifted to UTC; naive ones are taken as UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Stored "...Z" timestamp (or any ISO-8601 offset) as naive UTC; blank -> None."""
    if value is None or not value.strip():
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return as_utc_naive(datetime.fromisoformat(s))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Whole-second "...Z" form written onto records; naive input is treated as UTC."""
    if dt is None:
        return None
    dt = as_utc_naive(dt).replace(microsecond=0)
    return dt.isoformat() + "Z"


def now_z() -> str:
    return to_utc_z(utcnow())
