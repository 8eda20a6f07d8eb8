from __future__ import annotations
from datetime import datetime, timedelta, UTC
from typing import Optional

__all__ = ["utc_now", "days_from_now", "to_naive_utc", "isoformat_utc"]

def utc_now() -> datetime:
    """Return naive UTC now (columns are stored as naive UTC)."""
    return datetime.now(UTC).replace(tzinfo=None)

def days_from_now(days: int) -> datetime:
    """Naive UTC timestamp ``days`` in the future."""
    return utc_now() + timedelta(days=days)

def to_naive_utc(dt: datetime | None) -> Optional[datetime]:
    """Convert aware datetime to naive UTC for storage/compare; pass through naive assumed UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)

def isoformat_utc(dt: datetime | None) -> Optional[str]:
    if dt is None:
        return None
    return to_naive_utc(dt).isoformat() + "Z"
