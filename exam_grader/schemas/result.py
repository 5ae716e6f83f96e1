from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

AnswerStatus = Literal["correct", "incorrect", "unanswered"]


class PenaltyRecord(BaseModel):
    original_score: float
    penalized_score: float
    type: Literal["fixed", "percentage"]
    amount: float
    minutes_late: int
    note: str


class PenaltyFields(BaseModel):
    # only ever set on answers[0]
    penalized_score: Optional[float] = None
    original_score: Optional[float] = None
    late_penalty: Optional[PenaltyRecord] = None


class Question(BaseModel):
    text: str
    options: Optional[list[str]] = None


class StructuredAnswer(PenaltyFields):
    type: Literal["structured"] = "structured"
    question: Question
    user_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    status: AnswerStatus = "unanswered"
    explanation: Optional[str] = None
    score: Optional[float] = None
    max_score: Optional[float] = None


class EssayAnswer(PenaltyFields):
    type: Literal["essay"] = "essay"
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    feedback: Optional[str] = None
    score: Optional[float] = None


Answer = Annotated[Union[StructuredAnswer, EssayAnswer], Field(discriminator="type")]


class StructuredSubmission(BaseModel):
    answers: list[StructuredAnswer] = Field(min_length=1)
    # graded client-side before submission
    score: float = Field(ge=0, le=10)
    duration_seconds: Optional[int] = Field(default=None, ge=0)


class TimeExpiredSubmission(BaseModel):
    duration_seconds: Optional[int] = Field(default=None, ge=0)


class ResultRead(BaseModel):
    id: int
    assessment_id: int
    user_id: int
    user_name: str
    kind: str
    score: float
    answers: list[Answer]
    duration_seconds: Optional[int] = None
    created_at: datetime
    graded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubmissionOutcome(BaseModel):
    already_submitted: bool
    result: ResultRead


class GradeEssayResponse(BaseModel):
    result_id: int
    score: float
    feedback: str
    already_graded: bool = False
    refused: bool = False


class ScoreUpdate(BaseModel):
    score: float = Field(ge=0, le=10)


class ScoreUpdateResponse(BaseModel):
    result_id: int
    score: float
    has_late_penalty: bool
    penalty: Optional[PenaltyRecord] = None
    penalty_already_applied: bool = False


class RegradeResponse(BaseModel):
    result_id: int
    score: float
    updated_questions: int = 0
    refused: bool = False
    feedback: Optional[str] = None
