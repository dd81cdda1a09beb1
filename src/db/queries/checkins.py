"""Check-in ledger database queries"""
import logging
from datetime import date
from typing import Optional
from src.db.connection import db

logger = logging.getLogger(__name__)

CHECKIN_COLUMNS = """
    id, user_id, book_id, checkin_date, reading_time, notes,
    parent_comment, teacher_comment, created_at
"""

# Only annotation fields may change after creation
COMMENT_FIELDS = ("parent_comment", "teacher_comment")


# ==========================================
# Writes
# ==========================================

async def insert_checkin(
    user_id: int,
    book_id: int,
    checkin_date: date,
    reading_time: int,
    notes: Optional[str]
) -> Optional[dict]:
    """
    Insert a check-in

    The (user_id, book_id, checkin_date) unique constraint decides duplicates.

    Returns:
        The created row, or None if the user already checked in this book that day
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO checkins (user_id, book_id, checkin_date, reading_time, notes)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (user_id, book_id, checkin_date) DO NOTHING
                RETURNING {CHECKIN_COLUMNS}
                """,
                (user_id, book_id, checkin_date, reading_time, notes)
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


async def delete_checkin(checkin_id: int, user_id: int) -> bool:
    """
    Delete a check-in owned by user_id

    Returns:
        True if a row was deleted
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "DELETE FROM checkins WHERE id = %s AND user_id = %s RETURNING id",
                (checkin_id, user_id)
            )
            result = await cur.fetchone()
            await conn.commit()
            return result is not None


async def update_checkin_comment(checkin_id: int, field: str, comment: str) -> Optional[dict]:
    """Set parent_comment or teacher_comment"""
    if field not in COMMENT_FIELDS:
        raise ValueError(f"Not an annotation field: {field}")

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                UPDATE checkins
                SET {field} = %s, updated_at = CURRENT_TIMESTAMP
                WHERE id = %s
                RETURNING {CHECKIN_COLUMNS}
                """,
                (comment, checkin_id)
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


# ==========================================
# Reads
# ==========================================

async def get_checkin(checkin_id: int) -> Optional[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {CHECKIN_COLUMNS} FROM checkins WHERE id = %s",
                (checkin_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def get_checkin_dates(user_id: int) -> list[date]:
    """Distinct check-in dates, newest first"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT DISTINCT checkin_date
                FROM checkins
                WHERE user_id = %s
                ORDER BY checkin_date DESC
                """,
                (user_id,)
            )
            rows = await cur.fetchall()
            return [row['checkin_date'] for row in rows]


async def get_checkin_aggregates(user_id: int) -> dict:
    """
    Ledger rollup for the stats aggregator

    Returns:
        {'total_books': int, 'total_reading_time': int, 'total_checkins': int}
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT
                    COUNT(DISTINCT book_id) AS total_books,
                    COALESCE(SUM(reading_time), 0) AS total_reading_time,
                    COUNT(*) AS total_checkins
                FROM checkins
                WHERE user_id = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            return {
                'total_books': row['total_books'] or 0,
                'total_reading_time': int(row['total_reading_time'] or 0),
                'total_checkins': row['total_checkins'] or 0,
            }


async def count_checkins_with_notes(user_id: int) -> int:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(*) AS count
                FROM checkins
                WHERE user_id = %s AND notes IS NOT NULL AND notes <> ''
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            return row['count'] if row else 0


async def get_reading_minutes_on(user_id: int, day: date) -> int:
    """Total minutes read on one calendar day"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COALESCE(SUM(reading_time), 0) AS total
                FROM checkins
                WHERE user_id = %s AND checkin_date = %s
                """,
                (user_id, day)
            )
            row = await cur.fetchone()
            return int(row['total']) if row else 0


async def get_checkins_on(user_id: int, day: date) -> list[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {CHECKIN_COLUMNS}
                FROM checkins
                WHERE user_id = %s AND checkin_date = %s
                ORDER BY created_at DESC
                """,
                (user_id, day)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def get_user_checkins(
    user_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 20,
    offset: int = 0
) -> tuple[list[dict], int]:
    """
    Page through a user's check-ins, newest first

    Returns:
        (rows, total matching rows)
    """
    where = ["user_id = %s"]
    params: list = [user_id]
    if start_date:
        where.append("checkin_date >= %s")
        params.append(start_date)
    if end_date:
        where.append("checkin_date <= %s")
        params.append(end_date)
    where_clause = " AND ".join(where)

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT COUNT(*) AS total FROM checkins WHERE {where_clause}",
                params
            )
            total = (await cur.fetchone())['total']

            await cur.execute(
                f"""
                SELECT {CHECKIN_COLUMNS}
                FROM checkins
                WHERE {where_clause}
                ORDER BY checkin_date DESC, created_at DESC
                LIMIT %s OFFSET %s
                """,
                params + [limit, offset]
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows], total


async def get_daily_rollup(user_id: int, start_date: date, end_date: date) -> list[dict]:
    """Per-date check-in count and minutes within [start_date, end_date]"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT
                    checkin_date,
                    COUNT(*) AS count,
                    COALESCE(SUM(reading_time), 0) AS total_time
                FROM checkins
                WHERE user_id = %s AND checkin_date BETWEEN %s AND %s
                GROUP BY checkin_date
                ORDER BY checkin_date
                """,
                (user_id, start_date, end_date)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def get_period_checkin_stats(user_id: int, start_date: date, end_date: date) -> dict:
    """
    Check-in totals within [start_date, end_date]

    Returns:
        {'total_books': int, 'total_time': int, 'checkin_days': int}
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT
                    COUNT(DISTINCT book_id) AS total_books,
                    COALESCE(SUM(reading_time), 0) AS total_time,
                    COUNT(DISTINCT checkin_date) AS checkin_days
                FROM checkins
                WHERE user_id = %s AND checkin_date BETWEEN %s AND %s
                """,
                (user_id, start_date, end_date)
            )
            row = await cur.fetchone()
            return {
                'total_books': row['total_books'] or 0,
                'total_time': int(row['total_time'] or 0),
                'checkin_days': row['checkin_days'] or 0,
            }
