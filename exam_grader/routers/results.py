import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from exam_grader.core.config import PASS_SCORE, SCORE_BUCKETS, SCORE_SCALE
from exam_grader.core.current_user import get_current_user
from exam_grader.core.deps import get_db, get_file_store, get_oracle
from exam_grader.core.permissions import ensure_owner_or_admin, require_admin
from exam_grader.models.result import Result
from exam_grader.models.user import User
from exam_grader.schemas.result import (
    GradeEssayResponse,
    RegradeResponse,
    ResultRead,
    ScoreUpdate,
    ScoreUpdateResponse,
)
from exam_grader.schemas.result_stats import ResultStats, ScoreBucket
from exam_grader.services.file_store import LocalFileStore
from exam_grader.services.grading import grade_essay
from exam_grader.services.oracle import ScoringOracle
from exam_grader.services.penalty import update_score
from exam_grader.services.regrade import regrade
from exam_grader.services.results import find_result, get_assessment_or_404, get_result_or_404

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/assessments/{assessment_id}/results", response_model=list[ResultRead])
def list_results_for_assessment(
    assessment_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    get_assessment_or_404(db, assessment_id)
    return (
        db.query(Result)
        .filter(Result.assessment_id == assessment_id)
        .order_by(Result.created_at.asc(), Result.id.asc())
        .all()
    )


@router.get("/assessments/{assessment_id}/results/stats", response_model=ResultStats)
def result_stats(
    assessment_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    assessment = get_assessment_or_404(db, assessment_id)

    total, average, highest, lowest = (
        db.query(
            func.count(Result.id),
            func.avg(Result.score),
            func.max(Result.score),
            func.min(Result.score),
        )
        .filter(Result.assessment_id == assessment_id)
        .one()
    )
    passed = (
        db.query(func.count(Result.id))
        .filter(Result.assessment_id == assessment_id, Result.score >= PASS_SCORE)
        .scalar()
    ) or 0

    distribution = []
    for low, high in SCORE_BUCKETS:
        upper = Result.score <= high if high == SCORE_SCALE else Result.score < high
        count = (
            db.query(func.count(Result.id))
            .filter(Result.assessment_id == assessment_id, Result.score >= low, upper)
            .scalar()
        ) or 0
        distribution.append(ScoreBucket(range=f"{low}-{high}", min=low, max=high, count=count))

    return ResultStats(
        assessment_id=assessment.id,
        assessment_name=assessment.name,
        total_results=total,
        average_score=round(average or 0, 2),
        highest_score=highest or 0,
        lowest_score=lowest or 0,
        pass_rate=round(passed / total * 100, 2) if total else 0,
        distribution=distribution,
    )


@router.get("/assessments/{assessment_id}/results/me", response_model=ResultRead)
def my_result(
    assessment_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    get_assessment_or_404(db, assessment_id)
    result = find_result(db, assessment_id, me.id)
    if not result:
        raise HTTPException(status_code=404, detail="Result not found")
    return result


@router.get("/results/{result_id}", response_model=ResultRead)
def read_result(
    result_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    result = get_result_or_404(db, result_id)
    ensure_owner_or_admin(me, result)
    return result


@router.delete("/results/{result_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_result(
    result_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    result = get_result_or_404(db, result_id)
    db.delete(result)
    db.commit()
    logger.info("Admin %s deleted result %s", admin.id, result_id)


@router.post("/results/{result_id}/grade-essay", response_model=GradeEssayResponse)
def grade_essay_result(
    result_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    oracle: ScoringOracle = Depends(get_oracle),
    file_store: LocalFileStore = Depends(get_file_store),
):
    outcome = grade_essay(db, result_id, me, oracle, file_store)
    return GradeEssayResponse(
        result_id=outcome.result.id,
        score=outcome.score,
        feedback=outcome.feedback,
        already_graded=outcome.already_graded,
        refused=outcome.refused,
    )


@router.put("/results/{result_id}/score", response_model=ScoreUpdateResponse)
def update_result_score(
    result_id: int,
    payload: ScoreUpdate,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    outcome = update_score(db, result_id, me, payload.score)
    return ScoreUpdateResponse(
        result_id=result_id,
        score=outcome.score,
        has_late_penalty=outcome.penalty is not None,
        penalty=outcome.penalty,
        penalty_already_applied=outcome.penalty_already_applied,
    )


@router.post("/results/{result_id}/regrade", response_model=RegradeResponse)
def regrade_result(
    result_id: int,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    oracle: ScoringOracle = Depends(get_oracle),
):
    outcome = regrade(db, result_id, me, oracle)
    return RegradeResponse(
        result_id=outcome.result.id,
        score=outcome.score,
        updated_questions=len(outcome.updated_questions),
        refused=outcome.refused,
        feedback=outcome.feedback,
    )
