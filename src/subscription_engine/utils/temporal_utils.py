"""
Temporal Utility Functions.

This module provides helpers for turning loosely formatted transaction dates
into calendar dates and for the day arithmetic used by subscription detection.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)


def parse_transaction_date(value: Any) -> Optional[date]:
    """
    Convert a raw transaction date into a calendar date.

    Accepts date/datetime objects, epoch milliseconds and free-form strings
    (ISO 8601, "Jan 15 2024", "01/15/2024", ...). Timezone-aware datetimes are
    converted to UTC before the calendar date is taken.

    Args:
        value: Raw date value

    Returns:
        The calendar date, or None if the value cannot be interpreted
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return _to_utc_date(value)

    if isinstance(value, date):
        return value

    if isinstance(value, (int, float, Decimal)):
        try:
            return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Timestamp out of range: {value}")
            return None

    text = str(value).strip()
    if not text:
        return None

    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError) as e:
        logger.warning(f"Unparseable transaction date '{text}': {e}")
        return None

    return _to_utc_date(parsed)


def _to_utc_date(value: datetime) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def days_between(start: date, end: date) -> int:
    """Number of calendar days from start to end (negative if end is earlier)."""
    return (end - start).days


def add_days(start: date, days: int) -> date:
    """Calendar date the given number of days after start."""
    return start + timedelta(days=days)


def date_span_days(dates: Sequence[date]) -> int:
    """
    Days between the first and last entry of an ascending date sequence.

    Returns 0 for fewer than two dates.
    """
    if len(dates) < 2:
        return 0
    return days_between(dates[0], dates[-1])
