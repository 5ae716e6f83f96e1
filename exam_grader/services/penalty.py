"""
Late-submission penalty.

Lateness is always measured server-side from ``Assessment.deadline`` and
``Result.created_at``. Once a penalty record sits in the answers it is
final: later score updates never compute a second deduction.
"""

import copy
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from exam_grader.core.config import LATE_PENALTY_TIERS
from exam_grader.core.errors import ValidationError
from exam_grader.core.permissions import ensure_owner_or_admin
from exam_grader.models.assessment import Assessment
from exam_grader.models.result import Result
from exam_grader.models.user import User
from exam_grader.schemas.result import PenaltyRecord
from exam_grader.services.results import get_result_or_404

logger = logging.getLogger(__name__)


@dataclass
class PenaltyOutcome:
    score: float
    penalty: Optional[PenaltyRecord]
    penalty_already_applied: bool = False


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def minutes_late(deadline: datetime, submitted_at: datetime) -> int:
    """Whole minutes past the deadline, floored; negative when early."""
    delta = _as_utc(submitted_at) - _as_utc(deadline)
    return math.floor(delta.total_seconds() / 60)


def _format_lateness(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} minute(s)"
    return f"{minutes // 60} hour(s) {minutes % 60} minute(s)"


def penalty_for(original_score: float, late_minutes: int) -> PenaltyRecord | None:
    """
    Tiered deduction. Upper bounds are inclusive: exactly 30 minutes late is
    still the first tier, exactly 60 the second.
    """
    if late_minutes <= 0 or original_score <= 0:
        return None

    for max_minutes, penalty_type, amount in LATE_PENALTY_TIERS:
        if max_minutes is not None and late_minutes > max_minutes:
            continue

        if penalty_type == "fixed":
            penalized = max(0.0, original_score - amount)
            note = f"Submitted {_format_lateness(late_minutes)} late, {amount:g} point(s) deducted."
        else:
            penalized = original_score * (100 - amount) / 100
            note = f"Submitted {_format_lateness(late_minutes)} late, {amount:g}% of the score deducted."

        return PenaltyRecord(
            original_score=original_score,
            penalized_score=round(penalized, 2),
            type=penalty_type,
            amount=amount,
            minutes_late=late_minutes,
            note=note,
        )
    return None


def find_existing_penalty(answers: list | None) -> dict | None:
    for answer in answers or []:
        if isinstance(answer, dict) and answer.get("late_penalty"):
            return answer["late_penalty"]
    return None


def apply_late_penalty(result: Result, assessment: Assessment | None, score: float) -> PenaltyOutcome:
    """
    Set ``result.score`` from a caller-supplied pre-penalty ``score``,
    deducting a late penalty the first time one is due.

    The caller commits.
    """
    existing = find_existing_penalty(result.answers)
    if existing is not None:
        record = PenaltyRecord.model_validate(existing)
        # a retry re-sending the original score must land on the same final score
        final = record.penalized_score if score == record.original_score else score
        result.score = final
        logger.info("Result %s already carries a late penalty; stored score %.2f as-is", result.id, final)
        return PenaltyOutcome(score=final, penalty=record, penalty_already_applied=True)

    record = None
    if assessment is not None and assessment.deadline is not None and score > 0:
        record = penalty_for(score, minutes_late(assessment.deadline, result.created_at))

    if record is None:
        result.score = score
        return PenaltyOutcome(score=score, penalty=None)

    if not result.answers:
        raise ValidationError("Result has no answers to record a penalty on")

    answers = copy.deepcopy(result.answers)
    answers[0] = {
        **answers[0],
        "penalized_score": record.penalized_score,
        "original_score": record.original_score,
        "late_penalty": record.model_dump(),
    }
    result.answers = answers
    flag_modified(result, "answers")
    result.score = record.penalized_score

    logger.info(
        "Late penalty on result %s: %s minute(s) late, %.2f -> %.2f",
        result.id,
        record.minutes_late,
        record.original_score,
        record.penalized_score,
    )
    return PenaltyOutcome(score=record.penalized_score, penalty=record)


def update_score(db: Session, result_id: int, user: User, score: float) -> PenaltyOutcome:
    result = get_result_or_404(db, result_id)
    ensure_owner_or_admin(user, result)

    outcome = apply_late_penalty(result, result.assessment, score)

    db.commit()
    db.refresh(result)
    return outcome
