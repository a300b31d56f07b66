"""
Helper Utilities Module
Common utility functions used across the application.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytz
from dateutil import parser as date_parser

API_TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S.000'


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC; SQLite hands them back that way.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_api_timestamp(dt: datetime, tz_name: str = 'America/New_York') -> str:
    """
    Format a datetime the way Dockmaster expects query timestamps.

    Dockmaster interprets timestamps in the dealership's local time zone,
    so the value is converted before formatting. URL encoding is left to
    the HTTP layer.

    Args:
        dt: Datetime to format (naive values are treated as UTC)
        tz_name: Upstream local time zone

    Returns:
        String in ``YYYY-MM-DDTHH:MM:SS.000`` form
    """
    local = ensure_utc(dt).astimezone(pytz.timezone(tz_name))
    return local.strftime(API_TIMESTAMP_FORMAT)


def parse_work_date(value: Optional[str]) -> Optional[str]:
    """
    Convert a Dockmaster ``MM/DD/YYYY`` work date to zero-padded ``YYYY-MM-DD``.

    Returns None for empty or malformed values.
    """
    if not value:
        return None

    parts = str(value).strip().split(' ')[0].split('/')
    if len(parts) != 3:
        return None

    month, day, year = parts
    if not (month.isdigit() and day.isdigit() and year.isdigit()) or len(year) != 4:
        return None

    return f"{year}-{int(month):02d}-{int(day):02d}"


def parse_datetime(dt_string: Optional[str]) -> Optional[datetime]:
    """
    Parse a datetime string to an aware UTC datetime.

    Args:
        dt_string: ISO 8601 (or dateutil-parsable) string

    Returns:
        datetime object or None if parsing fails
    """
    if not dt_string:
        return None

    try:
        return ensure_utc(date_parser.parse(dt_string))
    except (ValueError, TypeError, OverflowError):
        return None


def safe_get(data: Dict, *keys, default=None) -> Any:
    """
    Safely get nested dictionary value.

    Integer keys index into lists, so ``safe_get(d, 'items', 0, 'id')`` works.

    Args:
        data: Dictionary to traverse
        *keys: Keys to follow
        default: Default value if key not found

    Returns:
        Value at path or default
    """
    result = data
    for key in keys:
        if isinstance(result, dict):
            result = result.get(key)
        elif isinstance(result, list) and isinstance(key, int):
            result = result[key] if -len(result) <= key < len(result) else None
        else:
            return default
        if result is None:
            return default
    return result


def sanitize_string(text: Optional[str], max_length: int = None) -> Optional[str]:
    """
    Sanitize string for database storage.

    Args:
        text: Text to sanitize
        max_length: Maximum length (truncate if exceeded)

    Returns:
        Sanitized string
    """
    if text is None:
        return None

    # Remove null bytes
    text = text.replace('\x00', '')

    if max_length and len(text) > max_length:
        text = text[:max_length - 3] + '...'

    return text
