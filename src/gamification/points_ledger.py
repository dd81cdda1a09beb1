"""
Points Ledger

Append-only record of point grants. user_stats.total_points is a cached
sum of the ledger; every grant writes the entry and bumps the cache in the
same transaction, so the two never diverge.

Grant sources:
- Badge rewards (badge_system)
- Level-up bonuses (level_system)
- Daily challenge rewards (challenges)
"""

from typing import Dict, List, Optional
import logging

from src.db import queries
from src.exceptions import ValidationError
from src.models.gamification import PointSource
from src.observability.metrics import points_granted_total

logger = logging.getLogger(__name__)


async def grant_points(
    user_id: int,
    amount: int,
    reason: str,
    related_id: Optional[int] = None,
    related_type: Optional[PointSource] = None,
    dedupe_key: Optional[str] = None
) -> Optional[int]:
    """
    Grant points to a user

    Args:
        user_id: User id
        amount: Positive number of points
        reason: Reason tag stored on the entry (e.g. 'daily challenge completed')
        related_id: Optional id of the related badge/level/etc.
        related_type: What related_id refers to
        dedupe_key: Optional idempotency key; a second grant with the same
            key for the same user is a no-op

    Returns:
        Ledger entry id, or None when dedupe_key was already used

    Raises:
        ValidationError: If amount is not a positive integer
    """
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError(
            message="Point grants must be positive integers",
            field="amount",
            value=amount,
            user_id=str(user_id),
            operation="grant_points"
        )

    source = related_type.value if related_type else None
    entry_id = await queries.add_points(
        user_id,
        amount,
        reason,
        related_id=related_id,
        related_type=source,
        dedupe_key=dedupe_key
    )

    if entry_id is None:
        logger.info(f"Skipped duplicate grant for user {user_id} (key={dedupe_key})")
        return None

    points_granted_total.labels(related_type=source or "none").inc(amount)
    logger.info(f"Granted {amount} points to user {user_id}: {reason}")
    return entry_id


async def get_points_history(user_id: int, limit: int = 50) -> List[Dict]:
    """Recent ledger entries, newest first"""
    return await queries.get_points_history(user_id, limit=limit)


async def get_points_balance(user_id: int) -> int:
    """Total points derived from the ledger"""
    return await queries.sum_user_points(user_id)


async def verify_points_balance(user_id: int) -> Dict[str, int]:
    """
    Compare the cached total with the ledger sum

    Returns:
        {'cached': int, 'ledger': int, 'difference': int}
    """
    stats = await queries.get_user_stats(user_id)
    cached = stats['total_points'] if stats else 0
    ledger = await queries.sum_user_points(user_id)

    if cached != ledger:
        logger.error(
            f"Points drift for user {user_id}: cached={cached}, ledger={ledger}"
        )

    return {"cached": cached, "ledger": ledger, "difference": cached - ledger}
