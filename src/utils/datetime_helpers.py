"""
Calendar Utilities

Date arithmetic used by the gamification engine. Everything here is pure:
"today" is derived from the configured APP_TIMEZONE and every helper accepts
an explicit date so callers (and tests) can pin the clock.

RULES:
- Check-ins are date-only; time of day never matters for streaks
- "today" / "yesterday" always mean calendar days in APP_TIMEZONE
- Weeks start on Sunday (matches the weekly report)
"""

import calendar
import logging
from datetime import datetime, date, timedelta
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo

from src.config import APP_TIMEZONE

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


def app_timezone() -> ZoneInfo:
    """ZoneInfo for the configured application timezone"""
    return ZoneInfo(APP_TIMEZONE)


def now_local() -> datetime:
    """
    Get current datetime in the application timezone

    Returns:
        Timezone-aware datetime
    """
    return datetime.now(app_timezone())


def today() -> date:
    """Today's calendar date in the application timezone"""
    return now_local().date()


def to_date(value: DateLike) -> date:
    """
    Coerce a date, datetime or ISO string (YYYY-MM-DD[...]) to a date

    Raises:
        ValueError: If the string is not ISO formatted
        TypeError: For unsupported types
    """
    # datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise TypeError(f"Cannot convert {type(value).__name__} to date")


def is_today(value: DateLike, reference: Optional[date] = None) -> bool:
    reference = reference or today()
    return to_date(value) == reference


def is_yesterday(value: DateLike, reference: Optional[date] = None) -> bool:
    reference = reference or today()
    return to_date(value) == reference - timedelta(days=1)


def days_between(earlier: DateLike, later: DateLike) -> int:
    """Whole calendar days from `earlier` to `later` (negative if reversed)"""
    return (to_date(later) - to_date(earlier)).days


def week_bounds(reference: date) -> Tuple[date, date]:
    """
    Sunday-start week containing `reference`

    Returns:
        (first_day, last_day) inclusive
    """
    # date.weekday(): Monday=0 .. Sunday=6
    offset = (reference.weekday() + 1) % 7
    start = reference - timedelta(days=offset)
    return start, start + timedelta(days=6)


def previous_week_bounds(reference: date) -> Tuple[date, date]:
    """The full Sunday-start week before the one containing `reference`"""
    start, _ = week_bounds(reference)
    previous_start = start - timedelta(days=7)
    return previous_start, start - timedelta(days=1)


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """
    First and last day of a month

    Raises:
        ValueError: If month is outside 1..12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
