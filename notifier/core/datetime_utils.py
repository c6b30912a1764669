"""Centralized datetime utilities for consistent timezone handling.

All functions return naive datetimes for database compatibility
(SQLAlchemy models use naive UTC).

Usage:
    from notifier.core.datetime_utils import utc_now, parse_iso_utc

    # Capture the cycle timestamp once
    now = utc_now()

    # Evaluation time from CLI input
    at = parse_iso_utc("2026-01-12T12:00+02:00")  # 2026-01-12 10:00
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    Replaces deprecated datetime.utcnow().
    """
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    # Convert to UTC and strip timezone
    return dt.astimezone(UTC).replace(tzinfo=None)


def to_unix_millis(dt: datetime) -> int:
    """Convert a naive UTC datetime to milliseconds since the epoch."""
    return int(dt.replace(tzinfo=UTC).timestamp() * 1000)


def parse_iso_utc(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into a naive UTC datetime.

    Offsets (including "Z") are converted to UTC; a timestamp without an
    offset is taken to be UTC already.

    Args:
        value: Timestamp, e.g. "2026-01-12T10:00" or "2026-01-12T12:00+02:00"

    Returns:
        Naive UTC datetime

    Raises:
        ValueError: If the value is not an ISO 8601 timestamp
    """
    return to_naive_utc(datetime.fromisoformat(value.strip()))
