from sqlalchemy.orm import Session

from exam_grader.core.errors import NotFound
from exam_grader.models.assessment import Assessment
from exam_grader.models.result import Result


def get_assessment_or_404(db: Session, assessment_id: int) -> Assessment:
    assessment = db.query(Assessment).filter(Assessment.id == assessment_id).first()
    if not assessment:
        raise NotFound("Assessment not found")
    return assessment


def get_result_or_404(db: Session, result_id: int) -> Result:
    result = db.query(Result).filter(Result.id == result_id).first()
    if not result:
        raise NotFound("Result not found")
    return result


def find_result(db: Session, assessment_id: int, user_id: int) -> Result | None:
    return (
        db.query(Result)
        .filter(Result.assessment_id == assessment_id, Result.user_id == user_id)
        .first()
    )
