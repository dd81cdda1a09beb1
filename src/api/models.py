"""Pydantic models for API request/response validation"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime

from src.models.checkin import CheckInComment
from src.models.gamification import BadgeProgress, DailyChallenge, LevelInfo, UserStats


class CheckInResponse(BaseModel):
    """Result of a new check-in, including what it earned"""
    checkin: Dict[str, Any]
    stats: UserStats
    new_badges: List[Dict[str, Any]] = Field(default_factory=list)
    level_up: bool = False
    new_level: int = 1
    points_awarded: int = 0
    streak_milestone: Optional[int] = None


class CheckInListResponse(BaseModel):
    """Page of check-ins"""
    checkins: List[Dict[str, Any]]
    total: int
    limit: int
    offset: int


class StreakResponse(BaseModel):
    """Current reading streak"""
    user_id: int
    streak: int


class CommentRequest(CheckInComment):
    """Parent/teacher comment; author_id is the commenting adult"""
    author_id: int = Field(..., gt=0, description="Parent or teacher adding the comment")


class BadgeListResponse(BaseModel):
    """Earned and still-available badges"""
    user_id: int
    earned: List[Dict[str, Any]]
    available: List[Dict[str, Any]]


class BadgeProgressResponse(BaseModel):
    user_id: int
    badge_id: int
    progress: BadgeProgress


class BadgeCheckResponse(BaseModel):
    """Badges awarded by an explicit scan"""
    user_id: int
    awarded: List[Dict[str, Any]]


class LevelResponse(BaseModel):
    """Stored level and its display info"""
    user_id: int
    level: int
    total_books: int
    info: LevelInfo


class LevelCheckResponse(BaseModel):
    user_id: int
    level_up: bool
    old_level: int
    new_level: int
    bonus: int


class PointsHistoryResponse(BaseModel):
    user_id: int
    total_points: int
    history: List[Dict[str, Any]]


class RankResponse(BaseModel):
    user_id: int
    type: str
    rank: int


class LeaderboardResponse(BaseModel):
    type: str
    entries: List[Dict[str, Any]]


class ChallengeClaimResponse(BaseModel):
    """Outcome of claiming today's challenge"""
    success: bool
    reason: str
    points_awarded: int
    challenge: DailyChallenge


class NotificationListResponse(BaseModel):
    notifications: List[Dict[str, Any]]
    total: int
    unread_count: int


class SchedulerTriggerResponse(BaseModel):
    """Result of a manually triggered scheduler task"""
    task: str
    result: int


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    database: str = Field(..., description="Database connection status")
    scheduler: Dict[str, Any] = Field(default_factory=dict, description="Reminder scheduler status")
    timestamp: datetime = Field(..., description="Check timestamp")


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(..., description="Error type")
    detail: Optional[str] = Field(None, description="Detailed error information")
    user_message: Optional[str] = Field(None, description="Message safe to show end users")
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)
