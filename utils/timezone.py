"""UTC time helpers. The user center speaks epoch milliseconds; we keep aware datetimes."""

from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def from_epoch_millis(millis: int | float) -> datetime:
    """Convert epoch milliseconds (as sent by the user center) to a UTC datetime."""
    return _EPOCH + timedelta(milliseconds=millis)


def to_epoch_millis(dt: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return (to_utc(dt) - _EPOCH) // timedelta(milliseconds=1)
