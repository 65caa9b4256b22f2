"""Centralized datetime utilities for consistent timezone handling.

All functions return naive datetimes interpreted as UTC, which is the only
representation the ledger stores. No timezone other than UTC is ever assumed.
"""

from datetime import UTC, datetime, timedelta

EPOCH = datetime(1970, 1, 1)


def utc_now() -> datetime:
    """Get current UTC time as naive datetime."""
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
    return dt.astimezone(UTC).replace(tzinfo=None)


def to_epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch, truncating sub-millisecond precision."""
    return (to_naive_utc(dt) - EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(millis: int) -> datetime:
    """Naive UTC datetime for a number of milliseconds since the Unix epoch."""
    return EPOCH + timedelta(milliseconds=millis)
