"""
Gamification engine for Reading Quest

Turns reading check-ins into rewards:
- Streak calculation
- Stats rollup after check-in create/delete
- Badge awards
- Levels and level-up bonuses
- Points ledger
- Daily challenge
"""

from src.gamification.streak_system import calculate_current_streak, get_checkin_streak
from src.gamification.points_ledger import grant_points, get_points_history, get_points_balance
from src.gamification.level_system import calculate_level, check_level_up, get_level_info
from src.gamification.badge_system import check_and_award_badges, get_badge_progress
from src.gamification.challenges import get_daily_challenge, claim_daily_challenge

__all__ = [
    "calculate_current_streak",
    "get_checkin_streak",
    "grant_points",
    "get_points_history",
    "get_points_balance",
    "calculate_level",
    "check_level_up",
    "get_level_info",
    "check_and_award_badges",
    "get_badge_progress",
    "get_daily_challenge",
    "claim_daily_challenge",
]
