"""
Datetime utilities.

All timestamps in the project are timezone-aware UTC.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime with timezone info."""
    return datetime.now(UTC)


def seconds_since(moment: datetime, now: datetime | None = None) -> float:
    """
    Get seconds elapsed since a moment.

    Naive datetimes are treated as UTC.

    Args:
        moment: Earlier timestamp
        now: Reference timestamp (defaults to current UTC time)

    Returns:
        Elapsed seconds (negative if moment is in the future)
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    now = now or utc_now()
    return (now - moment).total_seconds()
