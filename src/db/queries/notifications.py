"""Notification database queries"""
import logging
from datetime import date, datetime
from typing import Optional
from src.db.connection import db

logger = logging.getLogger(__name__)

NOTIFICATION_COLUMNS = """
    id, user_id, type, title, message, is_read, related_id, related_type, created_at
"""


async def create_notification(
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    related_id: Optional[int] = None,
    related_type: Optional[str] = None,
    dedupe_key: Optional[str] = None
) -> Optional[int]:
    """
    Insert a notification

    With a dedupe_key the insert is conditional on (user_id, dedupe_key)
    being new, which is how "at most once per day" reminders are enforced.

    Returns:
        Notification id, or None if the dedupe_key already existed
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO notifications (user_id, type, title, message, related_id, related_type, dedupe_key)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id, dedupe_key) WHERE dedupe_key IS NOT NULL DO NOTHING
                RETURNING id
                """,
                (user_id, notification_type, title, message, related_id, related_type, dedupe_key)
            )
            result = await cur.fetchone()
            await conn.commit()
            return result['id'] if result else None


# ==========================================
# Scheduler scans
# ==========================================

async def find_children_without_checkin_on(day: date) -> list[dict]:
    """Children who have checked in before but not on `day`"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT u.id, u.display_name
                FROM users u
                WHERE u.role = 'child'
                  AND EXISTS (SELECT 1 FROM checkins c WHERE c.user_id = u.id)
                  AND NOT EXISTS (
                      SELECT 1 FROM checkins c
                      WHERE c.user_id = u.id AND c.checkin_date = %s
                  )
                ORDER BY u.id
                """,
                (day,)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def find_inactive_children_with_parents(cutoff: date) -> list[dict]:
    """
    Parent-child links whose child last checked in on or before `cutoff` (or never)

    Returns:
        [{'child_id', 'child_name', 'parent_id', 'last_checkin'}]
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT
                    u.id AS child_id,
                    u.display_name AS child_name,
                    ur.parent_id,
                    MAX(c.checkin_date) AS last_checkin
                FROM users u
                JOIN user_relationships ur ON u.id = ur.child_id
                LEFT JOIN checkins c ON u.id = c.user_id
                WHERE u.role = 'child'
                  AND ur.relationship_type = 'parent-child'
                GROUP BY u.id, u.display_name, ur.parent_id
                HAVING MAX(c.checkin_date) IS NULL OR MAX(c.checkin_date) <= %s
                ORDER BY ur.parent_id, u.id
                """,
                (cutoff,)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def delete_notifications_before(cutoff: datetime) -> int:
    """Delete notifications created before cutoff, returns rows deleted"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "DELETE FROM notifications WHERE created_at < %s",
                (cutoff,)
            )
            deleted = cur.rowcount
            await conn.commit()
            return deleted


# ==========================================
# User-facing reads and updates
# ==========================================

async def get_user_notifications(user_id: int, limit: int = 20, offset: int = 0) -> list[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {NOTIFICATION_COLUMNS}
                FROM notifications
                WHERE user_id = %s
                ORDER BY created_at DESC, id DESC
                LIMIT %s OFFSET %s
                """,
                (user_id, limit, offset)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def count_notifications(user_id: int, unread_only: bool = False) -> int:
    query = "SELECT COUNT(*) AS count FROM notifications WHERE user_id = %s"
    if unread_only:
        query += " AND is_read = FALSE"
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(query, (user_id,))
            row = await cur.fetchone()
            return row['count'] if row else 0


async def count_unread_by_type(user_id: int) -> list[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT type, COUNT(*) AS count
                FROM notifications
                WHERE user_id = %s AND is_read = FALSE
                GROUP BY type
                ORDER BY type
                """,
                (user_id,)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def mark_notification_read(notification_id: int, user_id: int) -> bool:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "UPDATE notifications SET is_read = TRUE WHERE id = %s AND user_id = %s",
                (notification_id, user_id)
            )
            changed = cur.rowcount
            await conn.commit()
            return changed > 0


async def mark_all_notifications_read(user_id: int) -> int:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "UPDATE notifications SET is_read = TRUE WHERE user_id = %s AND is_read = FALSE",
                (user_id,)
            )
            changed = cur.rowcount
            await conn.commit()
            return changed


async def delete_notification(notification_id: int, user_id: int) -> bool:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "DELETE FROM notifications WHERE id = %s AND user_id = %s",
                (notification_id, user_id)
            )
            changed = cur.rowcount
            await conn.commit()
            return changed > 0


async def delete_read_notifications(user_id: int) -> int:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "DELETE FROM notifications WHERE user_id = %s AND is_read = TRUE",
                (user_id,)
            )
            changed = cur.rowcount
            await conn.commit()
            return changed
