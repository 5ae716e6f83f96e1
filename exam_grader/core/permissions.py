from fastapi import Depends, HTTPException, status

from exam_grader.core.current_user import get_current_user
from exam_grader.core.errors import Forbidden
from exam_grader.models.result import Result
from exam_grader.models.user import User


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return current_user


def ensure_owner_or_admin(user: User, result: Result) -> None:
    if result.user_id != user.id and not user.is_admin:
        raise Forbidden("Permission denied for this result")
