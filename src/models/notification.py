"""Notification models"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class NotificationType(str, Enum):
    SYSTEM = "system"
    REMINDER = "reminder"
    ACHIEVEMENT = "achievement"
    SOCIAL = "social"


class Notification(BaseModel):
    """Notification produced for a user"""
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    related_id: Optional[int] = None
    related_type: Optional[str] = None
    created_at: Optional[datetime] = None
