"""
CheckInService - Reading Check-in Business Logic

Records reading sessions and hands each change to the stats aggregator,
which drives the rest of the reward pipeline.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

import psycopg

from src.db import queries
from src.exceptions import (
    AuthorizationError,
    DuplicateCheckInError,
    RecordNotFoundError,
    wrap_external_exception,
)
from src.gamification.stats_aggregator import process_checkin_created, process_checkin_deleted
from src.gamification.streak_system import get_checkin_streak
from src.models.checkin import CheckInComment, CheckInCreate
from src.models.user import UserRole
from src.utils.datetime_helpers import month_bounds, today as current_date

logger = logging.getLogger(__name__)

COMMENT_FIELD_BY_ROLE = {
    UserRole.PARENT: "parent_comment",
    UserRole.TEACHER: "teacher_comment",
}


class CheckInService:
    """
    Service for the check-in ledger.

    Responsibilities:
    - Create check-ins (one per user, book and day) and run the reward pipeline
    - Owner-only deletion followed by a stats recompute
    - Parent/teacher comments
    - Read views: today, history, calendar, streak
    """

    def __init__(self, db_connection):
        """
        Initialize CheckInService.

        Args:
            db_connection: Database connection instance
        """
        self.db = db_connection
        logger.debug("CheckInService initialized")

    async def _require_user(self, user_id: int) -> dict:
        user = await queries.get_user(user_id)
        if not user:
            raise RecordNotFoundError(
                message=f"User {user_id} not found",
                record_type="User",
                record_id=str(user_id)
            )
        return user

    async def create_checkin(
        self,
        user_id: int,
        payload: CheckInCreate,
        today: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Record today's reading for one book.

        Args:
            user_id: Reader
            payload: Validated check-in payload
            today: Calendar day of the check-in (defaults to today in APP_TIMEZONE)

        Returns:
            {
                'checkin': dict,
                'stats': dict,
                'new_badges': list,
                'level_up': bool,
                'new_level': int,
                'points_awarded': int,
                'streak_milestone': Optional[int]
            }

        Raises:
            RecordNotFoundError: Unknown user or book
            DuplicateCheckInError: Book already checked in today
        """
        if today is None:
            today = current_date()

        await self._require_user(user_id)

        try:
            checkin = await queries.insert_checkin(
                user_id,
                payload.book_id,
                today,
                payload.reading_time,
                payload.notes
            )
        except psycopg.Error as e:
            raise wrap_external_exception(
                e,
                operation="create_checkin",
                user_id=str(user_id),
                context={"book_id": payload.book_id},
                record_type="Book"
            )

        if checkin is None:
            raise DuplicateCheckInError(payload.book_id, today, user_id=str(user_id))

        logger.info(
            f"User {user_id} checked in book {payload.book_id} "
            f"({payload.reading_time} min) on {today.isoformat()}"
        )

        rewards = await process_checkin_created(user_id, today)

        return {
            'checkin': checkin,
            'stats': rewards.stats.model_dump(),
            'new_badges': rewards.badges,
            'level_up': bool(rewards.level and rewards.level.level_up),
            'new_level': rewards.stats.level,
            'points_awarded': rewards.points_awarded,
            'streak_milestone': rewards.streak_milestone,
        }

    async def delete_checkin(self, checkin_id: int, user_id: int, today: Optional[date] = None) -> bool:
        """
        Delete a check-in owned by user_id.

        Returns:
            False if the check-in does not exist or belongs to someone else
        """
        deleted = await queries.delete_checkin(checkin_id, user_id)
        if not deleted:
            logger.info(f"User {user_id} could not delete check-in {checkin_id}")
            return False

        await process_checkin_deleted(user_id, today)
        logger.info(f"User {user_id} deleted check-in {checkin_id}")
        return True

    async def add_comment(self, checkin_id: int, author_id: int, payload: CheckInComment) -> dict:
        """
        Attach a parent or teacher comment.

        Raises:
            RecordNotFoundError: Unknown author or check-in
            AuthorizationError: Author is a child
        """
        author = await self._require_user(author_id)
        field = COMMENT_FIELD_BY_ROLE.get(UserRole(author['role']))
        if field is None:
            raise AuthorizationError(
                message=f"User {author_id} with role {author['role']} cannot comment",
                resource="check-in comments",
                user_id=str(author_id)
            )

        updated = await queries.update_checkin_comment(checkin_id, field, payload.comment)
        if updated is None:
            raise RecordNotFoundError(
                message=f"Check-in {checkin_id} not found",
                record_type="CheckIn",
                record_id=str(checkin_id),
                user_id=str(author_id)
            )

        logger.info(f"User {author_id} commented on check-in {checkin_id} as {field}")
        return updated

    async def get_today_checkins(self, user_id: int, today: Optional[date] = None) -> list[dict]:
        return await queries.get_checkins_on(user_id, today or current_date())

    async def get_user_checkins(
        self,
        user_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Dict[str, Any]:
        """Page of check-ins, newest first: {'checkins', 'total', 'limit', 'offset'}"""
        rows, total = await queries.get_user_checkins(
            user_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset
        )
        return {'checkins': rows, 'total': total, 'limit': limit, 'offset': offset}

    async def get_reading_calendar(self, user_id: int, year: int, month: int) -> Dict[str, dict]:
        """
        Per-day rollup for one month.

        Returns:
            {'2024-03-01': {'count': 2, 'total_time': 45}, ...} for days with check-ins
        """
        start, end = month_bounds(year, month)
        rows = await queries.get_daily_rollup(user_id, start, end)
        return {
            row['checkin_date'].isoformat(): {
                'count': row['count'],
                'total_time': int(row['total_time']),
            }
            for row in rows
        }

    async def get_checkin_streak(self, user_id: int, today: Optional[date] = None) -> int:
        return await get_checkin_streak(user_id, today)
