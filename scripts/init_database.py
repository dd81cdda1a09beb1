"""Create the schema and badge catalog, optionally with a demo family"""
import argparse
import asyncio
import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.db.connection import db
from src.db.queries import add_relationship, create_user, get_all_badges

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def seed_demo_users() -> None:
    """One child linked to one parent, handy for trying the API"""
    child = await create_user("demo_child", "Demo Child", "child")
    parent = await create_user("demo_parent", "Demo Parent", "parent")
    await add_relationship(parent['id'], child['id'], "parent-child")
    logger.info(f"Demo users created: child={child['id']}, parent={parent['id']}")


async def main(with_demo: bool) -> None:
    """Apply schema.sql (safe to re-run)"""
    try:
        logger.info("Initializing database connection...")
        await db.init_pool()

        await db.apply_schema()
        badges = await get_all_badges()
        logger.info(f"✅ Schema ready, {len(badges)} badges in catalog")

        if with_demo:
            await seed_demo_users()

    finally:
        await db.close_pool()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--demo", action="store_true", help="also create a demo child and parent")
    args = parser.parse_args()
    asyncio.run(main(args.demo))
