"""ISO-8601 helpers shared by the domain services and the SQL repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> Optional[str]:
    """Format *value* as ISO-8601, treating naive datetimes as UTC.

    SQLite drops tzinfo on the way back out, so naive values coming from
    the ORM are assumed to already be in UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_iso(value: str | None) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix accepted) into an aware UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
