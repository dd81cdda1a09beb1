"""Gamification database queries"""
import logging
from datetime import date
from typing import Optional
from src.config import APP_TIMEZONE
from src.db.connection import db

logger = logging.getLogger(__name__)

STATS_COLUMNS = """
    user_id, total_books, total_reading_time, consecutive_days,
    longest_streak, total_points, level
"""

BADGE_COLUMNS = "id, name, description, icon, condition, point_reward"

# Whitelisted ORDER BY clauses for leaderboards
LEADERBOARD_ORDER = {
    "points": "us.total_points DESC, us.user_id ASC",
    "books": "us.total_books DESC, us.user_id ASC",
    "streak": "us.longest_streak DESC, us.user_id ASC",
}


# ==========================================
# User Stats
# ==========================================

async def get_user_stats(user_id: int) -> Optional[dict]:
    """Get the cached stats row for a user"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {STATS_COLUMNS} FROM user_stats WHERE user_id = %s",
                (user_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def upsert_user_stats(
    user_id: int,
    total_books: int,
    total_reading_time: int,
    consecutive_days: int,
    longest_streak: int
) -> dict:
    """
    Write ledger-derived aggregates

    total_points and level are owned by the points ledger and the leveling
    engine and are left untouched. longest_streak only ever grows.

    Returns:
        The stats row after the write
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO user_stats
                    (user_id, total_books, total_reading_time, consecutive_days, longest_streak)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (user_id) DO UPDATE SET
                    total_books = EXCLUDED.total_books,
                    total_reading_time = EXCLUDED.total_reading_time,
                    consecutive_days = EXCLUDED.consecutive_days,
                    longest_streak = GREATEST(user_stats.longest_streak, EXCLUDED.longest_streak),
                    updated_at = CURRENT_TIMESTAMP
                RETURNING {STATS_COLUMNS}
                """,
                (user_id, total_books, total_reading_time, consecutive_days, longest_streak)
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


# ==========================================
# Points Ledger
# ==========================================

async def add_points(
    user_id: int,
    amount: int,
    reason: str,
    related_id: Optional[int] = None,
    related_type: Optional[str] = None,
    dedupe_key: Optional[str] = None
) -> Optional[int]:
    """
    Append a ledger entry and bump the cached total in one transaction

    With a dedupe_key the insert is conditional on (user_id, dedupe_key)
    being new; the cached total only moves when a row was inserted.

    Returns:
        The new entry id, or None when the dedupe_key already existed
    """
    async with db.connection() as conn:
        async with conn.transaction():
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO points (user_id, amount, reason, related_id, related_type, dedupe_key)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    ON CONFLICT (user_id, dedupe_key) WHERE dedupe_key IS NOT NULL DO NOTHING
                    RETURNING id
                    """,
                    (user_id, amount, reason, related_id, related_type, dedupe_key)
                )
                result = await cur.fetchone()
                if not result:
                    return None

                await cur.execute(
                    """
                    UPDATE user_stats
                    SET total_points = total_points + %s, updated_at = CURRENT_TIMESTAMP
                    WHERE user_id = %s
                    """,
                    (amount, user_id)
                )
                return result['id']


async def has_points_entry(user_id: int, dedupe_key: str) -> bool:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT 1 AS found FROM points WHERE user_id = %s AND dedupe_key = %s",
                (user_id, dedupe_key)
            )
            return await cur.fetchone() is not None


async def get_points_history(user_id: int, limit: int = 50) -> list[dict]:
    """Recent ledger entries, newest first"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id, user_id, amount, reason, related_id, related_type, dedupe_key, created_at
                FROM points
                WHERE user_id = %s
                ORDER BY created_at DESC, id DESC
                LIMIT %s
                """,
                (user_id, limit)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def sum_user_points(user_id: int) -> int:
    """Ledger sum (source of truth for total_points)"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT COALESCE(SUM(amount), 0) AS total FROM points WHERE user_id = %s",
                (user_id,)
            )
            row = await cur.fetchone()
            return int(row['total']) if row else 0


async def sum_points_between(user_id: int, start_date: date, end_date: date) -> int:
    """Points granted on local calendar days (APP_TIMEZONE) within [start_date, end_date]"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COALESCE(SUM(amount), 0) AS total
                FROM points
                WHERE user_id = %s AND (created_at AT TIME ZONE %s)::date BETWEEN %s AND %s
                """,
                (user_id, APP_TIMEZONE, start_date, end_date)
            )
            row = await cur.fetchone()
            return int(row['total']) if row else 0


# ==========================================
# Leveling
# ==========================================

async def raise_level_with_bonus(
    user_id: int,
    new_level: int,
    bonus: int,
    reason: str
) -> bool:
    """
    Persist a level-up and its bonus atomically

    The UPDATE only matches while the stored level is lower, so two
    concurrent checks cannot both grant the bonus.

    Returns:
        True if this call performed the level-up
    """
    async with db.connection() as conn:
        async with conn.transaction():
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE user_stats
                    SET level = %s, total_points = total_points + %s, updated_at = CURRENT_TIMESTAMP
                    WHERE user_id = %s AND level < %s
                    RETURNING level
                    """,
                    (new_level, bonus, user_id, new_level)
                )
                if await cur.fetchone() is None:
                    return False

                await cur.execute(
                    """
                    INSERT INTO points (user_id, amount, reason, related_id, related_type)
                    VALUES (%s, %s, %s, %s, 'level_up')
                    """,
                    (user_id, bonus, reason, new_level)
                )
                return True


async def set_user_level(user_id: int, level: int) -> None:
    """Store a level without any bonus (used when a level drops)"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE user_stats
                SET level = %s, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = %s
                """,
                (level, user_id)
            )
            await conn.commit()


# ==========================================
# Badges
# ==========================================

async def get_all_badges() -> list[dict]:
    """Badge catalog ordered by reward"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {BADGE_COLUMNS} FROM badges ORDER BY point_reward ASC, id ASC"
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def get_badge(badge_id: int) -> Optional[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {BADGE_COLUMNS} FROM badges WHERE id = %s",
                (badge_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def get_unearned_badges(user_id: int) -> list[dict]:
    """Catalog entries the user has not earned yet"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {BADGE_COLUMNS}
                FROM badges b
                WHERE NOT EXISTS (
                    SELECT 1 FROM user_badges ub
                    WHERE ub.badge_id = b.id AND ub.user_id = %s
                )
                ORDER BY point_reward ASC, id ASC
                """,
                (user_id,)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def get_user_badges(user_id: int) -> list[dict]:
    """Earned badges with earned_at, newest first"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT b.id, b.name, b.description, b.icon, b.condition, b.point_reward, ub.earned_at
                FROM badges b
                JOIN user_badges ub ON b.id = ub.badge_id
                WHERE ub.user_id = %s
                ORDER BY ub.earned_at DESC
                """,
                (user_id,)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def award_badge(user_id: int, badge_id: int, point_reward: int, reason: str) -> bool:
    """
    Record a badge and its point reward in one transaction

    The (user_id, badge_id) unique constraint arbitrates concurrent scans:
    the losing insert affects no row and no points are granted.

    Returns:
        True if newly awarded, False if already earned
    """
    async with db.connection() as conn:
        async with conn.transaction():
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO user_badges (user_id, badge_id)
                    VALUES (%s, %s)
                    ON CONFLICT (user_id, badge_id) DO NOTHING
                    RETURNING id
                    """,
                    (user_id, badge_id)
                )
                if await cur.fetchone() is None:
                    return False

                if point_reward > 0:
                    await cur.execute(
                        """
                        INSERT INTO points (user_id, amount, reason, related_id, related_type)
                        VALUES (%s, %s, %s, %s, 'badge')
                        """,
                        (user_id, point_reward, reason, badge_id)
                    )
                    await cur.execute(
                        """
                        UPDATE user_stats
                        SET total_points = total_points + %s, updated_at = CURRENT_TIMESTAMP
                        WHERE user_id = %s
                        """,
                        (point_reward, user_id)
                    )

    logger.info(f"User {user_id} earned badge {badge_id}")
    return True


# ==========================================
# Leaderboard
# ==========================================

async def get_leaderboard(kind: str = "points", limit: int = 20) -> list[dict]:
    """Children ranked by the chosen metric"""
    order_by = LEADERBOARD_ORDER.get(kind, LEADERBOARD_ORDER["points"])
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT
                    u.id AS user_id,
                    u.display_name,
                    u.avatar,
                    us.total_points,
                    us.total_books,
                    us.consecutive_days,
                    us.longest_streak,
                    us.level,
                    ROW_NUMBER() OVER (ORDER BY {order_by}) AS rank
                FROM user_stats us
                JOIN users u ON us.user_id = u.id
                WHERE u.role = 'child'
                ORDER BY {order_by}
                LIMIT %s
                """,
                (limit,)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def get_user_rank(user_id: int, kind: str = "points") -> int:
    """Rank among children, 0 if the user is not ranked"""
    order_by = LEADERBOARD_ORDER.get(kind, LEADERBOARD_ORDER["points"])
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT rank FROM (
                    SELECT
                        us.user_id,
                        ROW_NUMBER() OVER (ORDER BY {order_by}) AS rank
                    FROM user_stats us
                    JOIN users u ON us.user_id = u.id
                    WHERE u.role = 'child'
                ) ranked
                WHERE user_id = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            return row['rank'] if row else 0
