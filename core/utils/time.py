"""
Time Utilities

Helpers for the timestamps carried by normalized payloads.

Every emitted batch is stamped once with an ISO-8601 UTC string in
millisecond precision with a trailing "Z" (e.g. "2024-01-01T12:00:00.000Z").
"""

from datetime import datetime, timezone
from typing import Optional


def current_utc_datetime() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def to_iso_timestamp(dt: datetime) -> str:
    """
    Format a datetime as an ISO-8601 UTC string with millisecond precision.

    Args:
        dt: Datetime object (naive datetimes are assumed to be UTC)

    Returns:
        str: Timestamp such as "2024-01-01T12:00:00.000Z"

    Examples:
        >>> to_iso_timestamp(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))
        '2024-01-01T12:00:00.000Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def batch_timestamp(now: Optional[datetime] = None) -> str:
    """
    Timestamp shared by every payload of one emission cycle.

    Args:
        now: Override for the current time (used in tests)

    Returns:
        str: ISO-8601 UTC timestamp
    """
    return to_iso_timestamp(now or current_utc_datetime())
