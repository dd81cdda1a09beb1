"""
GameService - Read Side of the Gamification Engine

Leaderboards, ranks, weekly/monthly reports, the dashboard and
personalized goals. Nothing here writes; every number is read from
user_stats, the check-in ledger or the points ledger.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from src.db import queries
from src.exceptions import RecordNotFoundError, ValidationError
from src.gamification.badge_system import get_badge_recommendations, get_user_badges
from src.gamification.challenges import get_daily_challenge
from src.gamification.level_system import get_level_info
from src.models.gamification import LeaderboardKind
from src.utils.datetime_helpers import (
    month_bounds,
    previous_week_bounds,
    today as current_date,
    week_bounds,
)

logger = logging.getLogger(__name__)

MAX_LEADERBOARD_SIZE = 100

STREAK_BADGE_DAYS = 7
TIME_BADGE_MINUTES = 6000

READING_TIPS = [
    "Read at the same time every day to build the habit",
    "Read together with your parents and share what you liked",
    "Try different kinds of picture books to broaden your view",
    "Write down how a book made you feel",
    "Join class reading activities and swap books with friends",
]


class GameService:
    """
    Service for gamification read models.

    Responsibilities:
    - Stats and level info
    - Leaderboards and ranks (children only)
    - Weekly and monthly reading reports
    - Dashboard and personalized recommendations
    """

    def __init__(self, db_connection):
        """
        Initialize GameService.

        Args:
            db_connection: Database connection instance
        """
        self.db = db_connection
        logger.debug("GameService initialized")

    @staticmethod
    def _leaderboard_kind(kind: str) -> LeaderboardKind:
        try:
            return LeaderboardKind(kind)
        except ValueError:
            raise ValidationError(
                message=f"Unknown leaderboard type '{kind}'",
                field="type",
                value=kind
            )

    async def get_user_stats(self, user_id: int) -> dict:
        """
        Cached stats row.

        Raises:
            RecordNotFoundError: If the user has no stats row
        """
        stats = await queries.get_user_stats(user_id)
        if not stats:
            raise RecordNotFoundError(
                message=f"Stats for user {user_id} not found",
                record_type="UserStats",
                record_id=str(user_id)
            )
        return stats

    async def get_leaderboard(self, kind: str = "points", limit: int = 20) -> List[dict]:
        """Children ranked by points, distinct books or longest streak"""
        board = self._leaderboard_kind(kind)
        limit = max(1, min(limit, MAX_LEADERBOARD_SIZE))
        return await queries.get_leaderboard(board.value, limit)

    async def get_user_rank(self, user_id: int, kind: str = "points") -> int:
        board = self._leaderboard_kind(kind)
        return await queries.get_user_rank(user_id, board.value)

    async def _period_stats(self, user_id: int, start: date, end: date) -> Dict[str, Any]:
        checkins, points = await asyncio.gather(
            queries.get_period_checkin_stats(user_id, start, end),
            queries.sum_points_between(user_id, start, end),
        )
        return {
            'start_date': start.isoformat(),
            'end_date': end.isoformat(),
            'total_books': checkins['total_books'],
            'total_time': checkins['total_time'],
            'total_points': points,
            'checkin_days': checkins['checkin_days'],
        }

    async def get_weekly_stats(self, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
        """
        This week (Sunday to today) against the whole previous week.

        Returns:
            {
                'this_week': {...},
                'last_week': {...},
                'growth': {'books': int, 'time': int, 'points': int}
            }
        """
        if today is None:
            today = current_date()

        this_start, _ = week_bounds(today)
        last_start, last_end = previous_week_bounds(today)

        this_week, last_week = await asyncio.gather(
            self._period_stats(user_id, this_start, today),
            self._period_stats(user_id, last_start, last_end),
        )

        return {
            'this_week': this_week,
            'last_week': last_week,
            'growth': {
                'books': this_week['total_books'] - last_week['total_books'],
                'time': this_week['total_time'] - last_week['total_time'],
                'points': this_week['total_points'] - last_week['total_points'],
            },
        }

    async def get_monthly_stats(self, user_id: int, year: int, month: int) -> Dict[str, Any]:
        """
        Daily rollup and totals for one month.

        Raises:
            ValidationError: If month is outside 1..12
        """
        try:
            start, end = month_bounds(year, month)
        except ValueError as e:
            raise ValidationError(message=str(e), field="month", value=month)

        rollup, totals = await asyncio.gather(
            queries.get_daily_rollup(user_id, start, end),
            queries.get_period_checkin_stats(user_id, start, end),
        )

        return {
            'checkins': [
                {
                    'date': row['checkin_date'].isoformat(),
                    'count': row['count'],
                    'total_time': int(row['total_time']),
                }
                for row in rollup
            ],
            'total_books': totals['total_books'],
            'total_time': totals['total_time'],
            'days_active': len(rollup),
        }

    async def get_dashboard(self, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
        """Everything the home screen shows in one call"""
        stats = await self.get_user_stats(user_id)

        rank, badges, challenge = await asyncio.gather(
            queries.get_user_rank(user_id, LeaderboardKind.POINTS.value),
            get_user_badges(user_id),
            get_daily_challenge(user_id, today),
        )

        return {
            'stats': stats,
            'rank': rank,
            'badges': badges,
            'level_info': get_level_info(stats['level']).model_dump(),
            'daily_challenge': challenge.model_dump(),
        }

    async def get_personalized_recommendations(self, user_id: int) -> Dict[str, List]:
        """
        Near-complete badges, up to three goals and three reading tips.

        Returns:
            {'badges': list[dict], 'challenges': list[str], 'tips': list[str]}
        """
        stats = await queries.get_user_stats(user_id)
        badges = await get_badge_recommendations(user_id)

        challenges = []
        if stats:
            if stats['consecutive_days'] < STREAK_BADGE_DAYS:
                remaining = STREAK_BADGE_DAYS - stats['consecutive_days']
                challenges.append(f"Read {remaining} more days in a row to unlock Steady Reader")

            next_level_books = get_level_info(stats['level']).next_level_books
            if stats['total_books'] < next_level_books:
                remaining = next_level_books - stats['total_books']
                challenges.append(f"Read {remaining} more books to reach level {stats['level'] + 1}")

            if stats['total_reading_time'] < TIME_BADGE_MINUTES:
                challenges.append("Read 100 hours in total to unlock Time Traveler")

        return {
            'badges': badges,
            'challenges': challenges[:3],
            'tips': READING_TIPS[:3],
        }
