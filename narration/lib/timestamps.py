"""UTC timestamps for stored records and diagnostics.

Timestamps are written with millisecond precision and a trailing "Z"
(2025-01-15T10:30:00.000Z). Parsing accepts that form, explicit offsets
and naive values, which are taken as UTC.
"""

from datetime import datetime, timezone


def generate_timestamp() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """
    Format a datetime as a UTC ISO 8601 string with milliseconds.

    Args:
        dt: Datetime to format; naive values are taken as UTC

    Returns:
        str: e.g. "2025-01-15T10:30:00.000Z"
    """
    dt = _as_utc(dt)
    return f"{dt:%Y-%m-%dT%H:%M:%S}.{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 string into a timezone-aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(value))


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
