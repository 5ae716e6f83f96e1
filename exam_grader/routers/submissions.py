from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.orm import Session

from exam_grader.core.current_user import get_current_user
from exam_grader.core.deps import get_db, get_file_store
from exam_grader.models.user import User
from exam_grader.schemas.result import StructuredSubmission, SubmissionOutcome, TimeExpiredSubmission
from exam_grader.services.file_store import LocalFileStore
from exam_grader.services.submission_gate import EssayUpload, GateOutcome, submit

router = APIRouter()

_SUBMIT_RESPONSES = {
    200: {"description": "Already submitted; the existing result is returned unchanged"},
    404: {"description": "Assessment not found"},
}


def _respond(outcome: GateOutcome, response: Response) -> SubmissionOutcome:
    # a duplicate is a successful no-op, not a conflict
    response.status_code = status.HTTP_200_OK if outcome.already_submitted else status.HTTP_201_CREATED
    return SubmissionOutcome(already_submitted=outcome.already_submitted, result=outcome.result)


@router.post(
    "/assessments/{assessment_id}/submissions",
    response_model=SubmissionOutcome,
    status_code=status.HTTP_201_CREATED,
    responses=_SUBMIT_RESPONSES,
)
def submit_answers(
    assessment_id: int,
    payload: StructuredSubmission,
    response: Response,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    outcome = submit(db, assessment_id, me, "structured", payload)
    return _respond(outcome, response)


@router.post(
    "/assessments/{assessment_id}/submissions/essay",
    response_model=SubmissionOutcome,
    status_code=status.HTTP_201_CREATED,
    responses=_SUBMIT_RESPONSES,
)
def submit_essay(
    assessment_id: int,
    response: Response,
    file: Optional[UploadFile] = File(default=None),
    duration_seconds: Optional[int] = Form(default=None, ge=0),
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
    file_store: LocalFileStore = Depends(get_file_store),
):
    upload = None
    if file is not None:
        upload = EssayUpload(
            file_name=file.filename or "",
            data=file.file.read(),
            duration_seconds=duration_seconds,
        )
    outcome = submit(db, assessment_id, me, "essay", upload, file_store=file_store)
    return _respond(outcome, response)


@router.post(
    "/assessments/{assessment_id}/submissions/expired",
    response_model=SubmissionOutcome,
    status_code=status.HTTP_201_CREATED,
    responses=_SUBMIT_RESPONSES,
)
def submit_time_expired(
    assessment_id: int,
    response: Response,
    payload: Optional[TimeExpiredSubmission] = None,
    db: Session = Depends(get_db),
    me: User = Depends(get_current_user),
):
    outcome = submit(db, assessment_id, me, "time_expired", payload or TimeExpiredSubmission())
    return _respond(outcome, response)
