"""
Core utilities module for GRIMOIRE.
"""

from .datetime_utils import (
    utc_now,
    ensure_utc,
    parse_iso_datetime,
    from_epoch_millis,
    format_iso,
)
from .retry import retry_async

__all__ = [
    # Datetime utilities
    'utc_now',
    'ensure_utc',
    'parse_iso_datetime',
    'from_epoch_millis',
    'format_iso',
    # Retry utilities
    'retry_async',
]
