"""User-related Pydantic models"""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class UserRole(str, Enum):
    """Who a user is in the reading program"""
    CHILD = "child"
    PARENT = "parent"
    TEACHER = "teacher"


class RelationshipType(str, Enum):
    """Link between a supervising adult and a child"""
    PARENT_CHILD = "parent-child"
    TEACHER_STUDENT = "teacher-student"


class User(BaseModel):
    """User identity as supplied by the auth layer"""
    id: int
    username: str
    display_name: str
    role: UserRole
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None
