"""
Badge System

Badges are one-time awards tied to a threshold on the user's stats:

| condition     | metric                          | threshold |
|---------------|---------------------------------|-----------|
| first_checkin | total_books                     | >= 1      |
| streak_7      | consecutive_days                | >= 7      |
| streak_30     | consecutive_days                | >= 30     |
| books_100     | total_books                     | >= 100    |
| time_100h     | total_reading_time (minutes)    | >= 6000   |
| notes_50      | check-ins with non-empty notes  | >= 50     |

Features:
- Every condition maps to a pure evaluator returning (current, target)
- A scan awards every satisfied, unearned badge in one pass
- Each award (badge row + point reward) is one transaction guarded by the
  (user_id, badge_id) unique constraint, so a badge is earned at most once
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging

from src.db import queries
from src.exceptions import RecordNotFoundError
from src.models.gamification import BadgeCondition, BadgeProgress
from src.observability.metrics import badges_awarded_total, points_granted_total

logger = logging.getLogger(__name__)

# Recommend unearned badges at or above this progress percentage
RECOMMENDATION_THRESHOLD = 70.0


@dataclass(frozen=True)
class BadgeContext:
    """Everything a condition evaluator may read"""
    total_books: int = 0
    total_reading_time: int = 0
    consecutive_days: int = 0
    notes_count: int = 0

    @classmethod
    def from_stats(cls, stats: Optional[dict], notes_count: int = 0) -> "BadgeContext":
        stats = stats or {}
        return cls(
            total_books=stats.get('total_books', 0),
            total_reading_time=stats.get('total_reading_time', 0),
            consecutive_days=stats.get('consecutive_days', 0),
            notes_count=notes_count,
        )


Evaluator = Callable[[BadgeContext], Tuple[int, int]]

BADGE_EVALUATORS: Dict[BadgeCondition, Evaluator] = {
    BadgeCondition.FIRST_CHECKIN: lambda ctx: (min(ctx.total_books, 1), 1),
    BadgeCondition.STREAK_7: lambda ctx: (ctx.consecutive_days, 7),
    BadgeCondition.STREAK_30: lambda ctx: (ctx.consecutive_days, 30),
    BadgeCondition.BOOKS_100: lambda ctx: (ctx.total_books, 100),
    BadgeCondition.TIME_100H: lambda ctx: (ctx.total_reading_time, 6000),
    BadgeCondition.NOTES_50: lambda ctx: (ctx.notes_count, 50),
}

if set(BADGE_EVALUATORS) != set(BadgeCondition):
    raise RuntimeError("Every BadgeCondition needs an evaluator")


def evaluate_condition(condition: BadgeCondition, ctx: BadgeContext) -> Tuple[int, int]:
    """Return (current, target) for a badge condition"""
    return BADGE_EVALUATORS[BadgeCondition(condition)](ctx)


def is_condition_met(condition: BadgeCondition, ctx: BadgeContext) -> bool:
    current, target = evaluate_condition(condition, ctx)
    return current >= target


def progress_for(condition: BadgeCondition, ctx: BadgeContext) -> BadgeProgress:
    current, target = evaluate_condition(condition, ctx)
    if BadgeCondition(condition) == BadgeCondition.TIME_100H:
        # Reading time is shown in whole hours
        current, target = current // 60, target // 60
    percentage = min(current / target * 100, 100.0) if target > 0 else 100.0
    return BadgeProgress(current=current, target=target, percentage=round(percentage, 1))


async def _build_context(user_id: int, badges: List[dict], stats: Optional[dict] = None) -> BadgeContext:
    """Load stats, and the notes count only when a notes badge is in play"""
    if stats is None:
        stats = await queries.get_user_stats(user_id)

    notes_count = 0
    if any(BadgeCondition(b['condition']) == BadgeCondition.NOTES_50 for b in badges):
        notes_count = await queries.count_checkins_with_notes(user_id)

    return BadgeContext.from_stats(stats, notes_count)


async def check_and_award_badges(user_id: int, stats: Optional[dict] = None) -> List[Dict]:
    """
    Scan unearned badges and award every one whose condition is met

    Args:
        user_id: User id
        stats: Freshly recomputed stats row (re-read when omitted)

    Returns:
        Newly awarded badges:
        [
            {'id': int, 'name': str, 'description': str, 'icon': str,
             'condition': str, 'point_reward': int}
        ]
    """
    candidates = await queries.get_unearned_badges(user_id)
    if not candidates:
        return []

    ctx = await _build_context(user_id, candidates, stats)
    awarded = []

    for badge in candidates:
        condition = BadgeCondition(badge['condition'])
        if not is_condition_met(condition, ctx):
            continue

        newly_awarded = await queries.award_badge(
            user_id,
            badge['id'],
            badge['point_reward'],
            reason=f"badge:{badge['name']}"
        )
        if not newly_awarded:
            # A concurrent scan got there first
            continue

        badges_awarded_total.labels(condition=condition.value).inc()
        if badge['point_reward'] > 0:
            points_granted_total.labels(related_type="badge").inc(badge['point_reward'])
        logger.info(
            f"User {user_id} earned badge '{badge['name']}' ({condition.value}) "
            f"+{badge['point_reward']} points"
        )
        awarded.append(badge)

    return awarded


async def get_badge_progress(user_id: int, badge_id: int) -> BadgeProgress:
    """
    Progress toward one badge

    Raises:
        RecordNotFoundError: If the badge does not exist
    """
    badge = await queries.get_badge(badge_id)
    if not badge:
        raise RecordNotFoundError(
            message=f"Badge {badge_id} not found",
            record_type="Badge",
            record_id=str(badge_id),
            user_id=str(user_id)
        )

    ctx = await _build_context(user_id, [badge])
    return progress_for(BadgeCondition(badge['condition']), ctx)


async def get_available_badges(user_id: int) -> List[Dict]:
    """Unearned badges, each with a 'progress' entry"""
    badges = await queries.get_unearned_badges(user_id)
    if not badges:
        return []

    ctx = await _build_context(user_id, badges)
    return [
        {**badge, 'progress': progress_for(BadgeCondition(badge['condition']), ctx).model_dump()}
        for badge in badges
    ]


async def get_user_badges(user_id: int) -> List[Dict]:
    """Earned badges, newest first"""
    return await queries.get_user_badges(user_id)


async def get_all_badges() -> List[Dict]:
    return await queries.get_all_badges()


async def get_badge_recommendations(user_id: int, limit: int = 3) -> List[Dict]:
    """Unearned badges that are close to completion"""
    available = await get_available_badges(user_id)
    close = [
        badge for badge in available
        if badge['progress']['percentage'] >= RECOMMENDATION_THRESHOLD
    ]
    close.sort(key=lambda b: b['progress']['percentage'], reverse=True)
    return close[:limit]
