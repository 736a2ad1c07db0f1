"""Timestamp utilities for stocksync.

Records carry three kinds of time values:
- created_at: Unix epoch in milliseconds (sortable, matches the remote "timestamp" column)
- modified_at: ISO 8601 string
- display dates (sale date, last purchase): "DD/MM/YYYY HH:MM:SS" in local time
"""

from datetime import datetime, timezone
from typing import Optional

DISPLAY_FORMAT = "%d/%m/%Y %H:%M:%S"
DISPLAY_DATE_FORMAT = "%d/%m/%Y"


def current_timestamp_ms() -> int:
    """Get current time as Unix timestamp in milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def now_iso() -> str:
    """Get current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def format_datetime(dt: Optional[datetime] = None) -> str:
    """Format a datetime for display.

    Args:
        dt: datetime to format, or None for now

    Returns:
        String "DD/MM/YYYY HH:MM:SS" in local time
    """
    if dt is None:
        dt = datetime.now()
    elif dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime(DISPLAY_FORMAT)


def timestamp_ms_to_date(ts: Optional[int]) -> str:
    """Convert an epoch-milliseconds timestamp to a local "DD/MM/YYYY" date.

    Args:
        ts: Unix timestamp in milliseconds or None

    Returns:
        Date string, or empty string if ts is None or invalid
    """
    if ts is None:
        return ""
    try:
        utc_dt = datetime.fromtimestamp(int(ts) / 1000, tz=timezone.utc)
    except (ValueError, TypeError, OverflowError, OSError):
        return ""
    return utc_dt.astimezone().strftime(DISPLAY_DATE_FORMAT)
