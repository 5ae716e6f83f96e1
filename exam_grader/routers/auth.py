import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exam_grader.core.config import ACCESS_TOKEN_EXPIRE
from exam_grader.core.current_user import get_current_user
from exam_grader.core.deps import get_db
from exam_grader.core.security import create_access_token, hash_password, verify_password
from exam_grader.models.user import User
from exam_grader.schemas.auth import LoginRequest
from exam_grader.schemas.token import Token
from exam_grader.schemas.user import UserCreate, UserRead

logger = logging.getLogger(__name__)

router = APIRouter()

def _email_taken() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Email already registered",
    )


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Email already registered"}},
)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    if db.query(User.id).filter(User.email == payload.email).first():
        raise _email_taken()

    # self-registration only ever creates students
    student = User(
        email=payload.email,
        full_name=payload.full_name,
        hashed_password=hash_password(payload.password),
        role="student",
    )
    db.add(student)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _email_taken() from None
    db.refresh(student)

    logger.info("Registered student %s", student.id)
    return student


@router.post(
    "/login",
    response_model=Token,
    responses={401: {"description": "Invalid email or password"}},
)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    account = db.query(User).filter(User.email == payload.email).first()
    if account is None or not verify_password(payload.password, account.hashed_password):
        logger.info("Failed login for %s", payload.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    token = create_access_token(
        data={"sub": str(account.id), "role": account.role},
        expires_delta=ACCESS_TOKEN_EXPIRE,
    )
    return Token(access_token=token, token_type="bearer")


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user
