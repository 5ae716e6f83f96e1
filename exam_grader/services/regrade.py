"""
Regrade a structured Result from its stored answers.

One consolidated prompt goes to the oracle; its reply is read with the
version-1 reply grammar. Answers whose verdict line is missing are kept
exactly as stored. Lateness is not re-evaluated here.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from exam_grader.core.config import POLICY_REFUSAL_FEEDBACK, SCORE_SCALE
from exam_grader.core.errors import EssayRegradeRejected, OracleRefusal, ParseMismatch, ValidationError
from exam_grader.core.permissions import ensure_owner_or_admin
from exam_grader.models.result import Result
from exam_grader.models.user import User
from exam_grader.services.grading import model_for
from exam_grader.services.grammar import find_verdicts, parse_score_line
from exam_grader.services.oracle import ScoringOracle
from exam_grader.services.results import get_result_or_404

logger = logging.getLogger(__name__)

REGRADE_PROMPT = """\
Evaluate the following test and score it on a 10-point scale.

{summary}

Evaluate EVERY question, including the ones the student left unanswered.
For each question give the correct answer and a short explanation.

Judge each answer strictly:
- correct: the student's answer is exactly the correct answer
- incorrect: the student's answer differs from the correct answer
- unanswered: the student gave no answer

The score is the number of correct answers divided by the TOTAL number of
questions, multiplied by 10.

Your reply must start with "SCORE: [score]/10", followed by one line per question in this format:
Question [number]: [correct/incorrect/unanswered] - Correct answer: [the full correct answer] - [explanation]
"""


@dataclass
class RegradeOutcome:
    result: Result
    score: float
    updated_questions: list[int] = field(default_factory=list)
    refused: bool = False
    feedback: Optional[str] = None


def _question_text(answer: dict) -> tuple[str, list[str]]:
    question = answer.get("question") or {}
    if isinstance(question, str):
        return question, []
    return question.get("text") or "", question.get("options") or []


def build_regrade_prompt(answers: list[dict]) -> str:
    blocks = []
    for index, answer in enumerate(answers, start=1):
        text, options = _question_text(answer)
        block = f"Question {index}: {text}\nStudent answer: {answer.get('user_answer') or '(no answer)'}"
        if options:
            block += f"\nOptions: {', '.join(options)}"
        blocks.append(block)
    return REGRADE_PROMPT.format(summary="\n\n".join(blocks))


def reconcile_answers(answers: list[dict], reply: str) -> tuple[list[dict], list[int]]:
    """
    Overwrite status / correct_answer / explanation from the reply's verdict
    lines. Returns the new list and the 1-based numbers that were updated.
    """
    verdicts = find_verdicts(reply, len(answers))
    updated = copy.deepcopy(answers)
    touched = []
    for index, answer in enumerate(updated):
        verdict = verdicts.get(index + 1)
        if verdict is None:
            continue
        updated[index] = {
            **answer,
            "status": verdict.status,
            "correct_answer": verdict.correct_answer,
            "explanation": verdict.explanation,
        }
        touched.append(index + 1)
    return updated, touched


def regrade(
    db: Session,
    result_id: int,
    user: User,
    oracle: ScoringOracle,
    now: datetime | None = None,
) -> RegradeOutcome:
    result = get_result_or_404(db, result_id)
    ensure_owner_or_admin(user, result)

    assessment = result.assessment
    if result.kind != "structured" or (assessment is not None and assessment.is_essay):
        raise EssayRegradeRejected("Essay submissions are graded through the essay grading endpoint")

    answers = result.answers or []
    if not answers:
        raise ValidationError("No answers found to regrade")

    prompt = build_regrade_prompt(answers)
    try:
        reply = oracle.generate(
            prompt,
            model_id=model_for(assessment),
            system_prompt=(assessment.instructions if assessment is not None else None) or None,
        )
    except OracleRefusal:
        logger.warning("Oracle refused to regrade result %s; leaving it unchanged", result.id)
        return RegradeOutcome(result=result, score=result.score, refused=True, feedback=POLICY_REFUSAL_FEEDBACK)

    try:
        score = round(parse_score_line(reply).normalized(SCORE_SCALE), 2)
    except ParseMismatch:
        logger.warning("Regrade reply for result %s has no SCORE line; recording 0", result.id)
        score = 0.0

    updated_answers, touched = reconcile_answers(answers, reply)

    result.answers = updated_answers
    flag_modified(result, "answers")
    result.score = score
    result.graded_at = now or datetime.now(timezone.utc)
    db.commit()
    db.refresh(result)

    logger.info(
        "Regraded result %s: %.2f/%s, %d of %d question(s) updated",
        result.id,
        score,
        SCORE_SCALE,
        len(touched),
        len(answers),
    )
    return RegradeOutcome(result=result, score=score, updated_questions=touched, feedback=reply)
