"""
Module: clock.py
Description: UTC time helpers shared by delivery, storage, and logging.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat_z(value: datetime) -> str:
    """
    Format a datetime as ISO 8601 with millisecond precision and a Z suffix.

    Naive datetimes are assumed to already be UTC.

    Example:
        >>> isoformat_z(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2024-01-15T10:30:00.000Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 string (with or without Z suffix) into an aware datetime."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
