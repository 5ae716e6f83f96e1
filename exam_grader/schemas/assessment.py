from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class AssessmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    category: Literal["exam", "exercise"] = "exam"
    answer_format: Literal["multiple_choice", "written", "essay"] = "multiple_choice"
    description: Optional[str] = None
    instructions: Optional[str] = None
    deadline: Optional[datetime] = None
    model_id: Optional[str] = None
    allow_references: bool = False
    shuffle_questions: bool = False
    question_count: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True


class AssessmentRead(BaseModel):
    id: int
    name: str
    category: str
    answer_format: str
    description: Optional[str]
    instructions: Optional[str]
    deadline: Optional[datetime]
    model_id: Optional[str]
    allow_references: bool
    shuffle_questions: bool
    question_count: Optional[int]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AttemptInfo(BaseModel):
    """What a client needs to start, resume or skip a timed attempt."""

    assessment_id: int
    duration_minutes: int
    duration_seconds: int
    deadline: Optional[datetime] = None
    deadline_passed: bool = False
    submitted: bool = False
    result_id: Optional[int] = None
    duration_display: str = "00:00"
    # filled only when the client reports the expiry it holds
    seconds_left: Optional[int] = None
    time_left: Optional[str] = None
    urgency: Optional[str] = None
    expired: Optional[bool] = None
