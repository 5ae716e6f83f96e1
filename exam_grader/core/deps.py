from functools import lru_cache

from exam_grader.core.config import GEMINI_API_KEY, PUBLIC_BASE_URL, UPLOAD_DIR
from exam_grader.db.session import SessionLocal
from exam_grader.services.file_store import LocalFileStore
from exam_grader.services.oracle import GeminiOracle, ScoringOracle


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache(maxsize=1)
def get_oracle() -> ScoringOracle:
    return GeminiOracle(api_key=GEMINI_API_KEY)


def get_file_store() -> LocalFileStore:
    return LocalFileStore(UPLOAD_DIR, PUBLIC_BASE_URL)
