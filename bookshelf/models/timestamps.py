"""UTC timestamp helpers shared by the ORM models and services."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    PostgreSQL returns aware values for TIMESTAMP WITH TIME ZONE; SQLite
    drops the offset on the way back. Everything is stored in UTC, so a
    naive value read back is UTC.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
