"""
Reading Streak Calculator

A streak is the number of consecutive calendar days, ending today or
yesterday, on which the user has at least one check-in.

Rules:
- Input is the user's check-in dates; duplicates collapse to one day
- If the newest date is older than yesterday the streak is 0
- Walk newest -> oldest while each date is exactly one day before the
  previous counted date; the first gap ends the walk
- longest_streak = max(stored, current), it never decreases
"""

from typing import Iterable, Optional
from datetime import date, timedelta
import logging

from src.db import queries
from src.utils.datetime_helpers import today as current_date

logger = logging.getLogger(__name__)

# Milestones that trigger a streak notification
STREAK_MILESTONES = (7, 14, 30, 100)


def calculate_current_streak(checkin_dates: Iterable[date], today: Optional[date] = None) -> int:
    """
    Compute the current streak from check-in dates

    Args:
        checkin_dates: Check-in dates in any order, duplicates allowed
        today: Reference date (defaults to today in APP_TIMEZONE)

    Returns:
        Length of the run of consecutive days ending today or yesterday
    """
    if today is None:
        today = current_date()

    dates = sorted(set(checkin_dates), reverse=True)
    # Future-dated rows never count toward a streak
    dates = [d for d in dates if d <= today]
    if not dates:
        return 0

    newest = dates[0]
    if newest != today and newest != today - timedelta(days=1):
        return 0

    streak = 1
    previous = newest
    for checkin_date in dates[1:]:
        if checkin_date == previous - timedelta(days=1):
            streak += 1
            previous = checkin_date
        else:
            break

    return streak


def merge_longest_streak(stored_longest: Optional[int], current_streak: int) -> int:
    """Longest streak is monotonic: never lower than what is already stored"""
    return max(stored_longest or 0, current_streak)


def streak_milestone(current_streak: int) -> Optional[int]:
    """Return the milestone hit exactly by current_streak, if any"""
    return current_streak if current_streak in STREAK_MILESTONES else None


async def get_checkin_streak(user_id: int, today: Optional[date] = None) -> int:
    """
    Current streak for a user, read from the check-in ledger

    Args:
        user_id: User id
        today: Reference date (defaults to today in APP_TIMEZONE)
    """
    dates = await queries.get_checkin_dates(user_id)
    streak = calculate_current_streak(dates, today)
    logger.debug(f"User {user_id} streak: {streak} days over {len(dates)} distinct dates")
    return streak
