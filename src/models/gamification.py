"""Gamification models: stats, badges, points, levels, challenges"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class UserStats(BaseModel):
    """Cached per-user rollup derived from the check-in and points ledgers"""
    user_id: int
    total_books: int = 0
    total_reading_time: int = 0  # minutes
    consecutive_days: int = 0
    longest_streak: int = 0
    total_points: int = 0
    level: int = 1


class BadgeCondition(str, Enum):
    """Closed set of badge rules"""
    FIRST_CHECKIN = "first_checkin"
    STREAK_7 = "streak_7"
    STREAK_30 = "streak_30"
    BOOKS_100 = "books_100"
    TIME_100H = "time_100h"
    NOTES_50 = "notes_50"


class Badge(BaseModel):
    """Badge catalog entry"""
    id: int
    name: str
    description: str
    icon: str = ""
    condition: BadgeCondition
    point_reward: int = 0


class UserBadge(BaseModel):
    """A badge earned by a user"""
    user_id: int
    badge_id: int
    earned_at: datetime


class BadgeProgress(BaseModel):
    """Progress toward one badge"""
    current: int
    target: int
    percentage: float


class PointSource(str, Enum):
    """What a points ledger entry relates to"""
    CHECKIN = "checkin"
    BADGE = "badge"
    STREAK = "streak"
    LEVEL_UP = "level_up"
    CHALLENGE = "challenge"


class PointEntry(BaseModel):
    """Append-only points ledger entry"""
    id: int
    user_id: int
    amount: int
    reason: str
    related_id: Optional[int] = None
    related_type: Optional[PointSource] = None
    dedupe_key: Optional[str] = None
    created_at: Optional[datetime] = None


class LevelInfo(BaseModel):
    """Display info for a level"""
    level: int
    title: str
    books_required: int
    next_level_books: int
    rewards: list[str] = Field(default_factory=list)


class DailyChallenge(BaseModel):
    """Today's reading challenge, computed live from today's check-ins"""
    id: str
    title: str
    description: str
    target: int
    current: int
    reward: int
    completed: bool


class LeaderboardKind(str, Enum):
    """Leaderboard ordering"""
    POINTS = "points"
    BOOKS = "books"
    STREAK = "streak"
