"""
Stats Aggregator

Keeps user_stats in step with the check-in ledger. Every run recomputes
from source rather than applying deltas, so a retried or repeated event
converges on the same row.

Check-in created:
    recompute -> badge scan -> level check -> achievement notifications

Check-in deleted:
    recompute -> level reconcile; badges, points and level-up bonuses are
    never taken back
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple
import logging

from src.db import queries
from src.gamification.badge_system import check_and_award_badges
from src.gamification.level_system import LevelUpResult, check_level_up
from src.gamification.streak_system import (
    calculate_current_streak,
    merge_longest_streak,
    streak_milestone,
)
from src.models.gamification import UserStats
from src.observability.metrics import checkins_processed_total
from src.services import notification_service
from src.utils.datetime_helpers import today as current_date

logger = logging.getLogger(__name__)


@dataclass
class CheckInRewards:
    """What a single check-in earned"""
    stats: UserStats
    badges: List[dict] = field(default_factory=list)
    level: Optional[LevelUpResult] = None
    streak_milestone: Optional[int] = None

    @property
    def points_awarded(self) -> int:
        total = sum(badge['point_reward'] for badge in self.badges)
        if self.level and self.level.level_up:
            total += self.level.bonus
        return total


async def recompute_user_stats(user_id: int, today: Optional[date] = None) -> Tuple[Optional[UserStats], UserStats]:
    """
    Rebuild the ledger-derived fields of user_stats

    total_points and level are left alone; the points ledger and the
    leveling engine own them.

    Args:
        user_id: User id
        today: Reference date for the streak (defaults to today in APP_TIMEZONE)

    Returns:
        (previous stats or None, stats after the write)
    """
    if today is None:
        today = current_date()

    previous_row = await queries.get_user_stats(user_id)
    aggregates = await queries.get_checkin_aggregates(user_id)
    dates = await queries.get_checkin_dates(user_id)

    consecutive_days = calculate_current_streak(dates, today)
    stored_longest = previous_row['longest_streak'] if previous_row else 0
    longest_streak = merge_longest_streak(stored_longest, consecutive_days)

    row = await queries.upsert_user_stats(
        user_id,
        total_books=aggregates['total_books'],
        total_reading_time=aggregates['total_reading_time'],
        consecutive_days=consecutive_days,
        longest_streak=longest_streak,
    )

    previous = UserStats(**previous_row) if previous_row else None
    current = UserStats(**row)
    logger.debug(
        f"Recomputed stats for user {user_id}: books={current.total_books}, "
        f"minutes={current.total_reading_time}, streak={current.consecutive_days}"
    )
    return previous, current


async def process_checkin_created(user_id: int, today: Optional[date] = None) -> CheckInRewards:
    """
    Run the reward pipeline after a check-in was recorded

    Each stage sees the results of the one before it. Any failure
    propagates to the caller.
    """
    previous, stats = await recompute_user_stats(user_id, today)
    stats_row = stats.model_dump()

    awarded = await check_and_award_badges(user_id, stats_row)
    level_result = await check_level_up(user_id, stats_row)

    # A streak milestone is only news the first time the streak reaches it
    milestone = streak_milestone(stats.consecutive_days)
    if milestone and previous and previous.consecutive_days >= milestone:
        milestone = None

    for badge in awarded:
        await notification_service.send_achievement_notification(
            user_id, "badge", badge['name'], points=badge['point_reward']
        )
    if level_result.level_up:
        await notification_service.send_achievement_notification(
            user_id, "level_up", str(level_result.new_level), points=level_result.bonus
        )
    if milestone:
        await notification_service.send_achievement_notification(
            user_id, "streak", str(milestone)
        )

    # Stats read back so total_points and level reflect the grants above
    refreshed = await queries.get_user_stats(user_id)
    if refreshed:
        stats = UserStats(**refreshed)

    checkins_processed_total.labels(event="created").inc()
    return CheckInRewards(
        stats=stats,
        badges=awarded,
        level=level_result,
        streak_milestone=milestone,
    )


async def process_checkin_deleted(user_id: int, today: Optional[date] = None) -> UserStats:
    """
    Recompute after a check-in was removed

    The stored level follows total_books down, but no badge, point or
    level-up bonus is retracted.
    """
    _, stats = await recompute_user_stats(user_id, today)
    level_result = await check_level_up(user_id, stats.model_dump())
    if level_result.new_level != stats.level:
        stats = stats.model_copy(update={"level": level_result.new_level})

    checkins_processed_total.labels(event="deleted").inc()
    return stats
