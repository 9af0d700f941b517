from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

EPOCH = datetime.min.replace(tzinfo=timezone.utc)

__all__ = [
    "EPOCH",
    "as_utc",
    "to_iso",
    "utc_now",
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Any) -> datetime | None:
    """Return ``value`` as an aware UTC datetime, or ``None`` for non-datetimes.

    Naive values are assumed to already be UTC; Firestore hands back aware
    ``DatetimeWithNanoseconds`` instances which pass straight through.
    """
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Any) -> str | None:
    dt = as_utc(value)
    return dt.isoformat() if dt else None
