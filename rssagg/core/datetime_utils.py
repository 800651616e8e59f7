"""Centralized datetime utilities for consistent timezone handling.

All functions return naive datetimes for database compatibility
(SQLAlchemy models store naive UTC).

Usage:
    from rssagg.core.datetime_utils import utc_now, to_naive_utc

    feed.last_fetched_at = utc_now()
    post.published_at = to_naive_utc(parsed_pub_date)
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
