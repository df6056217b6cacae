"""Timestamp helpers shared by the stored record types."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone information."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite drops tzinfo) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as an ISO-8601 UTC string."""
    if value is None:
        return None
    return ensure_aware(value).astimezone(timezone.utc).isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string, accepting the trailing 'Z' form browsers write."""
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return ensure_aware(datetime.fromisoformat(value))
