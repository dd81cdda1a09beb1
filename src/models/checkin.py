"""Check-in models"""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class CheckInCreate(BaseModel):
    """Payload for a new reading check-in"""
    book_id: int = Field(..., gt=0, description="Book that was read")
    reading_time: int = Field(default=0, ge=0, description="Minutes spent reading")
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator('notes')
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        """Blank notes are stored as NULL so they never count toward notes badges"""
        if v is None:
            return None
        v = v.strip()
        return v or None


class CheckInComment(BaseModel):
    """Parent/teacher annotation on a check-in"""
    comment: str = Field(..., max_length=200)

    @field_validator('comment')
    @classmethod
    def comment_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Comment cannot be empty")
        return v.strip()


class CheckIn(BaseModel):
    """A stored check-in"""
    id: int
    user_id: int
    book_id: int
    checkin_date: date
    reading_time: int = 0
    notes: Optional[str] = None
    parent_comment: Optional[str] = None
    teacher_comment: Optional[str] = None
    created_at: Optional[datetime] = None


class CalendarDay(BaseModel):
    """Per-date rollup for the reading calendar"""
    count: int
    total_time: int
