from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from exam_grader.core.current_user import get_current_user
from exam_grader.core.deps import get_db
from exam_grader.core.permissions import require_admin
from exam_grader.models.assessment import Assessment
from exam_grader.models.user import User
from exam_grader.schemas.assessment import AssessmentCreate, AssessmentRead, AttemptInfo
from exam_grader.schemas.timer import AttemptTimer
from exam_grader.services.results import find_result, get_assessment_or_404
from exam_grader.services.timer import (
    derive_duration_minutes,
    format_time,
    is_deadline_passed,
    is_expired,
    remaining,
    urgency,
)

router = APIRouter()


def _assessment_order_by():
    """
    - deadline NULLs last (SQLite-safe)
    - deadline ascending
    - id ascending (stable tie-break)
    """
    return (
        Assessment.deadline.is_(None),
        Assessment.deadline.asc(),
        Assessment.id.asc(),
    )


@router.get("/assessments", response_model=list[AssessmentRead])
def list_assessments(
    category: Optional[Literal["exam", "exercise"]] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Assessment)
    if category:
        query = query.filter(Assessment.category == category)
    if not current_user.is_admin:
        query = query.filter(Assessment.is_active.is_(True))
    return query.order_by(*_assessment_order_by()).all()


@router.post(
    "/assessments",
    response_model=AssessmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_assessment(
    payload: AssessmentCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    assessment = Assessment(**payload.model_dump())
    db.add(assessment)
    db.commit()
    db.refresh(assessment)
    return assessment


@router.get("/assessments/{assessment_id}", response_model=AssessmentRead)
def get_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_assessment_or_404(db, assessment_id)


@router.patch("/assessments/{assessment_id}/toggle", response_model=AssessmentRead)
def toggle_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    assessment = get_assessment_or_404(db, assessment_id)
    assessment.is_active = not assessment.is_active
    db.commit()
    db.refresh(assessment)
    return assessment


@router.get("/assessments/{assessment_id}/attempt", response_model=AttemptInfo)
def attempt_info(
    assessment_id: int,
    expires_at: Optional[datetime] = Query(default=None),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    """
    Timer inputs for the client; a submitted attempt must not restart its timer.

    A client polling with the ``expires_at`` it persisted gets the countdown
    back (seconds left, MM:SS and the display band), computed on server time.
    """
    assessment = get_assessment_or_404(db, assessment_id)
    minutes = derive_duration_minutes(assessment.instructions)
    existing = find_result(db, assessment_id, me.id)

    info = AttemptInfo(
        assessment_id=assessment.id,
        duration_minutes=minutes,
        duration_seconds=minutes * 60,
        duration_display=format_time(minutes * 60),
        deadline=assessment.deadline,
        deadline_passed=is_deadline_passed(assessment.deadline),
        submitted=existing is not None,
        result_id=existing.id if existing else None,
    )

    if expires_at is not None and info.duration_seconds > 0:
        timer = AttemptTimer(
            assessment_id=assessment.id,
            expires_at=expires_at,
            total_duration_seconds=info.duration_seconds,
        )
        info.seconds_left = remaining(timer)
        info.time_left = format_time(info.seconds_left)
        info.urgency = urgency(info.seconds_left, info.duration_seconds)
        info.expired = is_expired(timer)

    return info
