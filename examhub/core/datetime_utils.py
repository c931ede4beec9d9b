"""
Datetime utility functions for handling timezone-aware datetimes.
"""
from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    Use this instead of datetime.now(timezone.utc) so tests can patch the clock.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _from_epoch_millis(millis: Union[int, float]) -> datetime:
    try:
        return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Instant out of range: {millis!r}") from e


def parse_client_instant(value: Union[int, float, str, datetime, None]) -> datetime:
    """
    Parse an instant reported by a client.

    Accepts epoch milliseconds (as sent by browsers via Date.now()), an
    ISO-8601 string, or a datetime. None means "now".

    Raises:
        ValueError: If the value cannot be interpreted as an instant,
            including epoch values outside the platform's range and
            values of any other type
    """
    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"Invalid instant: {value!r}")
    if isinstance(value, (int, float)):
        return _from_epoch_millis(value)
    text = value.strip()
    if text.isdigit():
        return _from_epoch_millis(int(text))
    return ensure_timezone_aware(datetime.fromisoformat(text))
