"""Database connection management"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from src.config import DATABASE_URL, DB_POOL_MAX_SIZE, DB_POOL_MIN_SIZE

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class Database:
    """Async pool of dict_row connections to the reading-quest database"""

    def __init__(self, connection_string: str = DATABASE_URL):
        self.connection_string = connection_string
        self._pool: Optional[AsyncConnectionPool] = None

    async def init_pool(self) -> None:
        """Open the pool; waits until min_size connections are ready"""
        logger.info(f"Opening database pool ({DB_POOL_MIN_SIZE}-{DB_POOL_MAX_SIZE} connections)")
        self._pool = AsyncConnectionPool(
            self.connection_string,
            min_size=DB_POOL_MIN_SIZE,
            max_size=DB_POOL_MAX_SIZE,
            open=False
        )
        await self._pool.open(wait=True)

    async def close_pool(self) -> None:
        """Close connection pool"""
        if self._pool:
            logger.info("Closing database connection pool")
            await self._pool.close()
            self._pool = None

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a connection; rows come back as dicts"""
        if not self._pool:
            raise RuntimeError("Database pool not initialized, call init_pool() first")

        async with self._pool.connection() as conn:
            conn.row_factory = dict_row
            yield conn

    async def apply_schema(self, schema_path: Path = SCHEMA_PATH) -> None:
        """Create tables, indexes and the badge catalog (idempotent)"""
        sql = schema_path.read_text(encoding="utf-8")
        async with self.connection() as conn:
            await conn.execute(sql)
            await conn.commit()
        logger.info(f"Applied schema from {schema_path.name}")


# Global database instance
db = Database()
