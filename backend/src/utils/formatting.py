"""
Datetime formatting utilities.

All datetimes are stored as naive UTC. These helpers normalize incoming
values and render outgoing ones:
- to_naive_utc: aware datetime -> naive UTC (naive values are assumed UTC)
- format_utc: naive UTC datetime -> ISO 8601 string with "Z" suffix
"""

from datetime import datetime, timezone
from typing import Optional


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC.

    Examples:
        >>> to_naive_utc(datetime(2024, 1, 1, 9, tzinfo=timezone.utc))
        datetime.datetime(2024, 1, 1, 9, 0)
        >>> to_naive_utc(datetime(2024, 1, 1, 9))
        datetime.datetime(2024, 1, 1, 9, 0)
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_utc(value: Optional[datetime]) -> Optional[str]:
    """Serialize a naive UTC datetime as ISO 8601 with explicit UTC marker."""
    if value is None:
        return None
    return to_naive_utc(value).isoformat() + "Z"
