"""User and relationship database queries"""
import logging
from typing import Optional
from src.db.connection import db

logger = logging.getLogger(__name__)


async def get_user(user_id: int) -> Optional[dict]:
    """Get user by id"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id, username, display_name, role, avatar, created_at
                FROM users
                WHERE id = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def user_exists(user_id: int) -> bool:
    """Check if user exists"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT 1 AS found FROM users WHERE id = %s",
                (user_id,)
            )
            return await cur.fetchone() is not None


async def create_user(
    username: str,
    display_name: str,
    role: str,
    avatar: Optional[str] = None
) -> dict:
    """
    Create a user together with its zeroed stats row

    Both inserts run in one transaction so a user never exists without stats.

    Returns:
        The created user row
    """
    async with db.connection() as conn:
        async with conn.transaction():
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    INSERT INTO users (username, display_name, role, avatar)
                    VALUES (%s, %s, %s, %s)
                    RETURNING id, username, display_name, role, avatar, created_at
                    """,
                    (username, display_name, role, avatar)
                )
                user = await cur.fetchone()
                await cur.execute(
                    "INSERT INTO user_stats (user_id) VALUES (%s)",
                    (user['id'],)
                )

    logger.info(f"Created {role} user {user['id']} ({username})")
    return dict(user)


async def add_relationship(parent_id: int, child_id: int, relationship_type: str = "parent-child") -> bool:
    """
    Link a parent/teacher to a child

    Returns:
        True if a new link was created, False if it already existed
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_relationships (parent_id, child_id, relationship_type)
                VALUES (%s, %s, %s)
                ON CONFLICT (parent_id, child_id) DO NOTHING
                RETURNING id
                """,
                (parent_id, child_id, relationship_type)
            )
            result = await cur.fetchone()
            await conn.commit()
            return result is not None


async def get_children_by_parent(parent_id: int) -> list[dict]:
    """Children linked to a parent or teacher"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT u.id, u.username, u.display_name, u.role, u.avatar, u.created_at
                FROM users u
                JOIN user_relationships ur ON u.id = ur.child_id
                WHERE ur.parent_id = %s AND u.role = 'child'
                ORDER BY u.display_name
                """,
                (parent_id,)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]
