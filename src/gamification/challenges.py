"""
Daily Challenge

One challenge per user per calendar day: read DAILY_CHALLENGE_TARGET_MINUTES
minutes today, then claim DAILY_CHALLENGE_REWARD points.

Progress is never stored; it is the live sum of today's check-in minutes.
Completion is the presence of today's challenge entry in the points ledger,
whose (user_id, dedupe_key) unique index makes the claim idempotent even
when two claims race.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional
import logging

from src.config import DAILY_CHALLENGE_REWARD, DAILY_CHALLENGE_TARGET_MINUTES
from src.db import queries
from src.gamification.points_ledger import grant_points
from src.models.gamification import DailyChallenge, PointSource
from src.observability.metrics import challenge_claims_total
from src.utils.datetime_helpers import today as current_date

logger = logging.getLogger(__name__)

CHALLENGE_REASON = "daily challenge completed"

CLAIMED = "claimed"
ALREADY_COMPLETED = "already_completed"
INSUFFICIENT_PROGRESS = "insufficient_progress"


@dataclass
class ChallengeClaimResult:
    success: bool
    reason: str
    points_awarded: int
    challenge: DailyChallenge


def challenge_dedupe_key(day: date) -> str:
    return f"daily_challenge:{day.isoformat()}"


async def get_daily_challenge(user_id: int, today: Optional[date] = None) -> DailyChallenge:
    """
    Today's challenge with live progress

    Args:
        user_id: User id
        today: Calendar day (defaults to today in APP_TIMEZONE)
    """
    if today is None:
        today = current_date()

    minutes = await queries.get_reading_minutes_on(user_id, today)
    completed = await queries.has_points_entry(user_id, challenge_dedupe_key(today))

    return DailyChallenge(
        id=f"daily_{today.isoformat()}",
        title="Daily Reading",
        description=f"Read for {DAILY_CHALLENGE_TARGET_MINUTES} minutes today",
        target=DAILY_CHALLENGE_TARGET_MINUTES,
        current=minutes,
        reward=DAILY_CHALLENGE_REWARD,
        completed=completed,
    )


async def claim_daily_challenge(user_id: int, today: Optional[date] = None) -> ChallengeClaimResult:
    """
    Claim today's reward

    Returns:
        ChallengeClaimResult; success is False with reason
        'already_completed' or 'insufficient_progress' when nothing was granted
    """
    if today is None:
        today = current_date()

    challenge = await get_daily_challenge(user_id, today)

    if challenge.completed:
        challenge_claims_total.labels(outcome=ALREADY_COMPLETED).inc()
        return ChallengeClaimResult(False, ALREADY_COMPLETED, 0, challenge)

    if challenge.current < challenge.target:
        challenge_claims_total.labels(outcome=INSUFFICIENT_PROGRESS).inc()
        logger.info(
            f"User {user_id} claimed daily challenge early: "
            f"{challenge.current}/{challenge.target} minutes"
        )
        return ChallengeClaimResult(False, INSUFFICIENT_PROGRESS, 0, challenge)

    entry_id = await grant_points(
        user_id,
        challenge.reward,
        CHALLENGE_REASON,
        related_type=PointSource.CHALLENGE,
        dedupe_key=challenge_dedupe_key(today),
    )

    if entry_id is None:
        # Lost a race with a concurrent claim
        challenge_claims_total.labels(outcome=ALREADY_COMPLETED).inc()
        completed = challenge.model_copy(update={"completed": True})
        return ChallengeClaimResult(False, ALREADY_COMPLETED, 0, completed)

    challenge_claims_total.labels(outcome=CLAIMED).inc()
    logger.info(f"User {user_id} completed the daily challenge for {today.isoformat()}")
    completed = challenge.model_copy(update={"completed": True})
    return ChallengeClaimResult(True, CLAIMED, challenge.reward, completed)
