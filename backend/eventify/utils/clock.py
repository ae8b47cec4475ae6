"""Time source shared by the stores and the token codec."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return current UTC time as a naive datetime.

    SQLite (via SQLModel) strips timezone info on round-trip, so all
    stored timestamps are naive-UTC.  Using naive-UTC everywhere
    avoids "can't subtract offset-naive and offset-aware" errors.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_aware(value: datetime) -> datetime:
    """Attach UTC to a stored naive timestamp for API responses."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
