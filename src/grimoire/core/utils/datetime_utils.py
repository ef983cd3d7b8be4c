"""
Centralized datetime utilities for GRIMOIRE.

All datetimes are handled in UTC. Store records arrive with
several date encodings and are normalized here.
"""

from datetime import datetime, timezone
from typing import Union


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime is in UTC timezone.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    elif dt.tzinfo == timezone.utc:
        return dt
    else:
        return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO datetime string to datetime object.

    Handles the formats found in store exports:
    - 2024-01-01T12:00:00
    - 2024-01-01T12:00:00Z
    - 2024-01-01T12:00:00+00:00
    - 2024-01-01T12:00:00.123Z

    Raises:
        ValueError: If string cannot be parsed as ISO datetime
    """
    if iso_string.endswith('Z'):
        iso_string = iso_string[:-1] + '+00:00'

    try:
        return ensure_utc(datetime.fromisoformat(iso_string))
    except ValueError as e:
        raise ValueError(f"Invalid ISO datetime string: {iso_string}") from e


def from_epoch_millis(value: Union[int, float]) -> datetime:
    """Convert milliseconds since the Unix epoch to a UTC datetime."""
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO string with Z suffix.

    Example: "2024-01-15T10:30:45.123456Z"
    """
    return ensure_utc(dt).isoformat().replace('+00:00', 'Z')
