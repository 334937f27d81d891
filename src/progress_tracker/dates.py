"""Calendar-day arithmetic for title schedules.

Every value is reduced to the calendar date it names, ignoring any time of day
or offset, and counted in UTC so the caller's local timezone never changes a
result. Unparseable or out-of-range input yields ``None`` rather than an error.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

logger = logging.getLogger(__name__)

DateLike = Union[str, date, datetime, None]

EPOCH = date(1970, 1, 1)
_DATE_ONLY_LENGTH = 10


def _from_string(value: str) -> Optional[date]:
    # Timestamps keep the date they were written with: "2024-01-05T23:00:00-05:00"
    # is 2024-01-05.
    text = value.strip()
    if len(text) < _DATE_ONLY_LENGTH:
        return None
    try:
        return date.fromisoformat(text[:_DATE_ONLY_LENGTH])
    except ValueError:
        return None


def parse_calendar_date(value: DateLike) -> Optional[date]:
    """Return the calendar date named by ``value`` or ``None`` if it does not parse."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        parsed = _from_string(value)
        if parsed is None:
            logger.debug("Ignoring unparseable date value %r", value)
        return parsed

    logger.debug("Ignoring unsupported date value of type %s", type(value).__name__)
    return None


def to_utc_day_ordinal(value: DateLike) -> Optional[int]:
    """Return the number of days between the Unix epoch and ``value`` in UTC."""

    parsed = parse_calendar_date(value)
    if parsed is None:
        return None
    return (parsed - EPOCH).days


def ordinal_to_label(ordinal: int) -> str:
    """Format a day ordinal back into a ``YYYY-MM-DD`` label."""

    return (EPOCH + timedelta(days=ordinal)).isoformat()


def inclusive_day_count(start: DateLike, end: DateLike) -> Optional[int]:
    """Count the days from ``start`` to ``end`` inclusive.

    Returns ``None`` when either bound does not parse or the range is inverted;
    callers skip such ranges.
    """

    start_day = to_utc_day_ordinal(start)
    end_day = to_utc_day_ordinal(end)
    if start_day is None or end_day is None or end_day < start_day:
        return None
    return end_day - start_day + 1


def is_valid_range(start: DateLike, end: DateLike) -> bool:
    return inclusive_day_count(start, end) is not None


def end_from_duration(start: DateLike, total_days: Union[int, float, str, None]) -> Optional[date]:
    """Return the last day of a range starting at ``start`` lasting ``total_days`` days."""

    start_date = parse_calendar_date(start)
    if start_date is None or total_days is None:
        return None
    try:
        days = int(float(total_days))
    except (OverflowError, TypeError, ValueError):
        logger.debug("Ignoring non-numeric duration %r", total_days)
        return None
    if days <= 0:
        return None
    try:
        return start_date + timedelta(days=days - 1)
    except OverflowError:
        logger.debug("Duration of %s days from %s is out of range", days, start_date)
        return None
