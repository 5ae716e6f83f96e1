"""
Scoring oracle adapter and the essay grading flow built on it.

``score_with_oracle`` is the adapter: one oracle call, one parse of the
``SCORE:`` line. It never raises on a malformed reply (the score degrades
to 0 and the reply is kept as feedback) and turns a safety refusal into a
fixed feedback text. Transport failures still raise ``OracleUnavailable``
so the caller can retry.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from exam_grader.core.config import DEFAULT_ORACLE_MODEL, POLICY_REFUSAL_FEEDBACK, SCORE_SCALE
from exam_grader.core.errors import NotFound, OracleRefusal, ValidationError
from exam_grader.core.permissions import ensure_owner_or_admin
from exam_grader.models.assessment import Assessment
from exam_grader.models.result import Result
from exam_grader.models.user import User
from exam_grader.services.file_store import LocalFileStore, guess_mime_type
from exam_grader.services.grammar import extract_score
from exam_grader.services.oracle import OracleFile, ScoringOracle
from exam_grader.services.results import get_result_or_404

logger = logging.getLogger(__name__)

ESSAY_GRADING_PROMPT = """\
You are a teacher grading an essay. Grade it on a 10-point scale:
- 9 points for content (how well it answers the task, accuracy, depth and critical thinking)
- 1 point for presentation (structure, coherence and form)

Task: {task}

The student's work is attached as a file. Read all of it and provide:
1. A score out of 10, with one decimal place
2. A detailed review of strengths and weaknesses
3. An overall comment with suggestions for improvement

Reply in exactly this format:
SCORE: [score]/10

REVIEW:
[strengths and weaknesses]

OVERALL COMMENT:
[summary and suggestions]
"""


@dataclass
class OracleScore:
    score: float
    feedback: str
    refused: bool = False


@dataclass
class GradeOutcome:
    result: Result
    score: float
    feedback: str
    already_graded: bool = False
    refused: bool = False


def model_for(assessment: Optional[Assessment]) -> str:
    if assessment is not None and assessment.model_id:
        return assessment.model_id
    return DEFAULT_ORACLE_MODEL


def score_with_oracle(
    oracle: ScoringOracle,
    prompt: str,
    file: Optional[OracleFile] = None,
    model_id: Optional[str] = None,
    system_prompt: Optional[str] = None,
    scale: float = SCORE_SCALE,
) -> OracleScore:
    try:
        reply = oracle.generate(prompt, file=file, model_id=model_id, system_prompt=system_prompt)
    except OracleRefusal:
        return OracleScore(score=0.0, feedback=POLICY_REFUSAL_FEEDBACK, refused=True)
    return OracleScore(score=extract_score(reply, expected_scale=scale), feedback=reply)


def is_graded(result: Result) -> bool:
    return result.graded_at is not None or (result.score or 0) > 0


def stored_feedback(result: Result) -> str:
    answers = result.answers or []
    if answers and isinstance(answers[0], dict):
        return answers[0].get("feedback") or ""
    return ""


def build_essay_prompt(assessment: Assessment) -> str:
    task = assessment.description or assessment.name or "No task description"
    return ESSAY_GRADING_PROMPT.format(task=task)


def grade_essay(
    db: Session,
    result_id: int,
    user: User,
    oracle: ScoringOracle,
    file_store: LocalFileStore,
    now: datetime | None = None,
) -> GradeOutcome:
    result = get_result_or_404(db, result_id)
    ensure_owner_or_admin(user, result)

    if result.kind == "structured":
        raise ValidationError("Only essay submissions are graded from a file")

    if is_graded(result):
        logger.info("Result %s already graded; returning stored score", result.id)
        return GradeOutcome(
            result=result,
            score=result.score,
            feedback=stored_feedback(result),
            already_graded=True,
        )

    answer = result.answers[0] if result.answers else {}
    file_url = answer.get("file_url")
    if not file_url:
        raise NotFound("No essay file attached to this result")
    if not file_store.exists(file_store.path_for_url(file_url)):
        raise NotFound("File not found")

    file_name = answer.get("file_name") or file_url.rsplit("/", 1)[-1]
    essay = OracleFile(
        data=file_store.read(file_url),
        mime_type=guess_mime_type(file_name),
        file_name=file_name,
    )

    assessment = result.assessment
    outcome = score_with_oracle(
        oracle,
        build_essay_prompt(assessment),
        file=essay,
        model_id=model_for(assessment),
        system_prompt=assessment.instructions or None,
    )

    answers = copy.deepcopy(result.answers)
    answers[0] = {**answers[0], "feedback": outcome.feedback, "score": outcome.score}
    result.answers = answers
    flag_modified(result, "answers")
    result.score = outcome.score
    if not outcome.refused:
        # a refusal stays ungraded so a teacher can retry it
        result.graded_at = now or datetime.now(timezone.utc)

    db.commit()
    db.refresh(result)

    logger.info(
        "Graded essay result %s: %.2f/%s%s",
        result.id,
        outcome.score,
        SCORE_SCALE,
        " (refused)" if outcome.refused else "",
    )
    return GradeOutcome(
        result=result,
        score=outcome.score,
        feedback=outcome.feedback,
        refused=outcome.refused,
    )
