"""
Time Utilities

This module provides utilities for handling timestamps from different exchanges.

Different exchanges return timestamps in different formats:
- Binance: milliseconds since epoch (e.g., 1704110400000)
- Coinbase: RFC3339 strings (e.g., "2024-01-01T12:00:00.123456Z")
- Coinbase candles: seconds since epoch as strings (e.g., "1704110400")
- We need: integer milliseconds since epoch

Adapters use these helpers so that every normalized model carries plain
epoch-millisecond integers regardless of the venue it came from.
"""

from datetime import datetime, timedelta, timezone
from typing import Union

from dateutil import parser as dateparser


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Args:
        dt: Datetime object (can be naive or timezone-aware)
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Unix timestamp in seconds or milliseconds

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt)
        1704110400

        >>> datetime_to_timestamp(dt, milliseconds=True)
        1704110400000

    Notes:
        - If datetime is naive (no timezone), UTC is assumed
        - Sub-millisecond precision is truncated
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    if milliseconds:
        # Integer arithmetic keeps the millisecond digits exact
        delta = dt - datetime(1970, 1, 1, tzinfo=timezone.utc)
        return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000

    return int(dt.timestamp())


def current_utc_timestamp(milliseconds: bool = False) -> int:
    """
    Get current UTC timestamp.

    Args:
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Current Unix timestamp

    Examples:
        >>> current_utc_timestamp()
        1704110400

        >>> current_utc_timestamp(milliseconds=True)
        1704110400123
    """
    return datetime_to_timestamp(datetime.now(timezone.utc), milliseconds)


def rfc3339_to_millis(value: str) -> int:
    """
    Convert an RFC3339 / ISO-8601 timestamp string to epoch milliseconds.

    Coinbase reports times with up to nanosecond precision
    (e.g., "2024-01-01T12:00:00.123456789Z"); digits beyond microseconds
    are truncated by the parser.

    Args:
        value: RFC3339 timestamp string

    Returns:
        int: Milliseconds since epoch

    Raises:
        ValueError: If the string is empty or not a valid timestamp

    Example:
        >>> rfc3339_to_millis("2024-01-01T12:00:00.250Z")
        1704110400250
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid RFC3339 timestamp: {value!r}")

    try:
        dt = dateparser.isoparse(value.strip())
    except (TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"Invalid RFC3339 timestamp: {value!r}. Error: {e}")

    return datetime_to_timestamp(dt, milliseconds=True)


def epoch_seconds_to_millis(value: Union[int, str]) -> int:
    """
    Convert an epoch-seconds value (int or numeric string) to milliseconds.

    Example:
        >>> epoch_seconds_to_millis("1704110400")
        1704110400000
    """
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid epoch seconds value: {value!r}")

    if seconds < 0:
        raise ValueError(f"Timestamp cannot be negative: {value!r}")

    return seconds * 1000


def millis_to_rfc3339(value: int) -> str:
    """
    Convert epoch milliseconds to an RFC3339 UTC string.

    Example:
        >>> millis_to_rfc3339(1704110400250)
        '2024-01-01T12:00:00.250000Z'
    """
    dt = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=int(value))
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
