"""
Submission gate: the only code path that creates a Result.

At most one Result exists per (assessment, user). The unique constraint on
``results`` is what guarantees it; the read before the insert only avoids
storing an essay file for a submission that would be discarded anyway.
A duplicate is reported back as the existing Result, never as an error, so
clients can retry freely.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Literal, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exam_grader.core.config import TIME_EXPIRED_FEEDBACK
from exam_grader.core.errors import Unauthorized, ValidationError
from exam_grader.models.result import Result
from exam_grader.models.user import User
from exam_grader.schemas.result import EssayAnswer, StructuredSubmission, TimeExpiredSubmission
from exam_grader.services.file_store import LocalFileStore, normalize_name_for_storage
from exam_grader.services.results import find_result, get_assessment_or_404

logger = logging.getLogger(__name__)

SubmissionKind = Literal["structured", "essay", "time_expired"]


@dataclass
class EssayUpload:
    file_name: str
    data: bytes
    duration_seconds: Optional[int] = None


@dataclass
class GateOutcome:
    result: Result
    already_submitted: bool


def essay_storage_path(assessment_id: int, user: User, file_name: str, now: datetime) -> str:
    extension = PurePosixPath(file_name).suffix.lower()
    millis = int(now.timestamp() * 1000)
    stem = normalize_name_for_storage(f"{user.display_name}_{user.id}_{millis}")
    return f"essays/{assessment_id}/{stem}{extension}"


def _insert_once(
    db: Session,
    result: Result,
    file_store: LocalFileStore | None = None,
    stored_path: str | None = None,
) -> GateOutcome:
    """Commit ``result``; on a lost race drop the file stored for it and return the winner."""
    db.add(result)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if file_store is not None and stored_path is not None:
            file_store.delete(stored_path)
        existing = find_result(db, result.assessment_id, result.user_id)
        if existing is None:
            raise
        logger.info(
            "Concurrent duplicate submission for assessment %s by user %s; keeping result %s",
            result.assessment_id,
            result.user_id,
            existing.id,
        )
        return GateOutcome(result=existing, already_submitted=True)

    db.refresh(result)
    logger.info(
        "Created %s result %s for assessment %s by user %s",
        result.kind,
        result.id,
        result.assessment_id,
        result.user_id,
    )
    return GateOutcome(result=result, already_submitted=False)


def submit(
    db: Session,
    assessment_id: int,
    user: User | None,
    kind: SubmissionKind,
    payload: Union[StructuredSubmission, EssayUpload, TimeExpiredSubmission, None] = None,
    file_store: LocalFileStore | None = None,
    now: datetime | None = None,
) -> GateOutcome:
    if user is None:
        raise Unauthorized("Not authenticated")

    assessment = get_assessment_or_404(db, assessment_id)

    existing = find_result(db, assessment_id, user.id)
    if existing:
        logger.info("Assessment %s already submitted by user %s (result %s)", assessment_id, user.id, existing.id)
        return GateOutcome(result=existing, already_submitted=True)

    now = now or datetime.now(timezone.utc)
    result = Result(
        assessment_id=assessment.id,
        user_id=user.id,
        user_name=user.display_name,
        kind=kind,
        score=0.0,
        created_at=now,
    )
    stored_path = None

    if kind == "time_expired":
        # essay-shaped for every answer format, so result pages render one way
        result.answers = [
            EssayAnswer(score=0.0, feedback=TIME_EXPIRED_FEEDBACK).model_dump(exclude_none=True)
        ]
        result.graded_at = now
        if isinstance(payload, TimeExpiredSubmission):
            result.duration_seconds = payload.duration_seconds

    elif kind == "essay":
        if not assessment.is_essay:
            raise ValidationError("This assessment does not accept essay files")
        if not isinstance(payload, EssayUpload) or not payload.data or not payload.file_name:
            raise ValidationError("No file uploaded")
        if file_store is None:
            raise ValidationError("No file store configured for essay uploads")

        stored_path = essay_storage_path(assessment.id, user, payload.file_name, now)
        file_url = file_store.write(stored_path, payload.data)
        result.answers = [
            EssayAnswer(file_url=file_url, file_name=payload.file_name).model_dump(exclude_none=True)
        ]
        result.duration_seconds = payload.duration_seconds

    elif kind == "structured":
        if assessment.is_essay:
            raise ValidationError("Essay assessments take a file, not an answer list")
        if not isinstance(payload, StructuredSubmission) or not payload.answers:
            raise ValidationError("No answers provided")
        result.answers = [answer.model_dump(exclude_none=True) for answer in payload.answers]
        result.score = payload.score
        result.duration_seconds = payload.duration_seconds

    else:
        raise ValidationError(f"Unknown submission kind: {kind}")

    return _insert_once(db, result, file_store, stored_path)
