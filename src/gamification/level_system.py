"""
Leveling System

Levels track cumulative distinct books read:

    level = total_books // BOOKS_PER_LEVEL + 1

Level-up Rules:
- A level-up is detected by comparing the freshly computed level with the
  stored one; only a strict increase counts
- Each level-up grants new_level * LEVEL_UP_BONUS_PER_LEVEL points, once
- Deleting check-ins can lower the computed level; the lower level is
  stored but earlier bonuses are never taken back
"""

from dataclasses import dataclass
from typing import Optional
import logging

from src.config import BOOKS_PER_LEVEL, LEVEL_UP_BONUS_PER_LEVEL
from src.db import queries
from src.models.gamification import LevelInfo
from src.observability.metrics import level_ups_total, points_granted_total

logger = logging.getLogger(__name__)

LEVEL_TITLES = [
    "Beginning Reader",
    "Reading Fan",
    "Little Bookworm",
    "Reading Expert",
    "Story Specialist",
    "Picture Book Master",
    "Reading Champion",
    "Book Collector",
    "Reading Legend",
    "Star of Wisdom",
]


@dataclass
class LevelUpResult:
    level_up: bool
    old_level: int
    new_level: int
    bonus: int = 0


def calculate_level(total_books: int) -> int:
    """Level for a distinct-book count (level 1 at zero books)"""
    return max(total_books, 0) // BOOKS_PER_LEVEL + 1


def level_up_bonus(level: int) -> int:
    return level * LEVEL_UP_BONUS_PER_LEVEL


def get_level_info(level: int) -> LevelInfo:
    """
    Display info for a level

    Returns:
        LevelInfo with title, books needed to reach the level and the next one,
        and the rewards granted on reaching it
    """
    level = max(level, 1)

    return LevelInfo(
        level=level,
        # Levels past the table keep the top title
        title=LEVEL_TITLES[min(level, len(LEVEL_TITLES)) - 1],
        books_required=(level - 1) * BOOKS_PER_LEVEL,
        next_level_books=level * BOOKS_PER_LEVEL,
        rewards=[
            f"Level {level} avatar frame",
            f"{level_up_bonus(level)} bonus points",
            "New reading challenges",
        ],
    )


async def check_level_up(user_id: int, stats: Optional[dict] = None) -> LevelUpResult:
    """
    Reconcile the stored level with total_books and grant a level-up bonus

    Args:
        user_id: User id
        stats: Freshly recomputed stats row (re-read when omitted)

    Returns:
        LevelUpResult describing what happened
    """
    if stats is None:
        stats = await queries.get_user_stats(user_id)
    if not stats:
        return LevelUpResult(level_up=False, old_level=1, new_level=1)

    old_level = stats['level']
    new_level = calculate_level(stats['total_books'])

    if new_level > old_level:
        bonus = level_up_bonus(new_level)
        performed = await queries.raise_level_with_bonus(
            user_id,
            new_level,
            bonus,
            reason=f"level_up:{new_level}"
        )
        if not performed:
            # Another request already stored this level
            logger.info(f"Level {new_level} for user {user_id} already recorded")
            return LevelUpResult(level_up=False, old_level=new_level, new_level=new_level)

        level_ups_total.inc()
        points_granted_total.labels(related_type="level_up").inc(bonus)
        logger.info(f"User {user_id} leveled up from {old_level} to {new_level} (+{bonus} points)")
        return LevelUpResult(level_up=True, old_level=old_level, new_level=new_level, bonus=bonus)

    if new_level < old_level:
        await queries.set_user_level(user_id, new_level)
        logger.info(f"User {user_id} level lowered from {old_level} to {new_level} after recompute")

    return LevelUpResult(level_up=False, old_level=old_level, new_level=new_level)
