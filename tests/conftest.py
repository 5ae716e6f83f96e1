import os
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

TEST_DB_FILE = "test_exam_grader.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"
TEST_UPLOAD_DIR = tempfile.mkdtemp(prefix="exam_grader_uploads_")

# must be set before exam_grader.core.config is imported
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["UPLOAD_DIR"] = TEST_UPLOAD_DIR
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from exam_grader.core.deps import get_db, get_file_store, get_oracle  # noqa: E402
from exam_grader.core.errors import OracleRefusal, OracleUnavailable  # noqa: E402
from exam_grader.core.security import hash_password  # noqa: E402
from exam_grader.db.base import Base  # noqa: E402
from exam_grader.main import app  # noqa: E402
from exam_grader.models.assessment import Assessment  # noqa: E402
from exam_grader.models.result import Result  # noqa: E402
from exam_grader.models.user import User  # noqa: E402
from exam_grader.services.file_store import LocalFileStore  # noqa: E402

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeOracle:
    """Scripted stand-in for the scoring oracle; records every call."""

    def __init__(self, reply: str = "SCORE: 8/10\n\nREVIEW:\nSolid work."):
        self.reply = reply
        self.error: Exception | None = None
        self.calls: list[dict] = []

    def generate(self, prompt, file=None, model_id=None, system_prompt=None):
        self.calls.append(
            {"prompt": prompt, "file": file, "model_id": model_id, "system_prompt": system_prompt}
        )
        if self.error is not None:
            raise self.error
        return self.reply

    def refuse(self):
        self.error = OracleRefusal("blocked")

    def go_down(self):
        self.error = OracleUnavailable("Scoring service unavailable: timeout")


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)
    shutil.rmtree(TEST_UPLOAD_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def seed_data():
    """Seed a clean minimal dataset for each test and hand back its ids."""
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        db.query(Result).delete()
        db.query(Assessment).delete()
        db.query(User).delete()
        db.commit()

        # Users
        student = User(
            email="student1@example.com",
            full_name="Nguyễn Văn An",
            role="student",
            hashed_password=hash_password("password123"),
        )
        other_student = User(
            email="student2@example.com",
            full_name="Student Two",
            role="student",
            hashed_password=hash_password("password123"),
        )
        admin = User(
            email="admin@example.com",
            full_name="Admin One",
            role="admin",
            hashed_password=hash_password("password123"),
        )
        db.add_all([student, other_student, admin])
        db.commit()

        # Assessments
        quiz = Assessment(
            name="Unit 1 quiz",
            category="exam",
            answer_format="multiple_choice",
            instructions="Time limit: 45 minutes. Answer every question.",
            question_count=3,
        )
        essay = Assessment(
            name="Argumentative essay",
            category="exam",
            answer_format="essay",
            description="Argue for or against homework.",
            instructions="You have 90 phút.",
            model_id="gemini-1.5-pro",
        )
        exercise = Assessment(
            name="Reading exercise",
            category="exercise",
            answer_format="written",
            deadline=datetime.now(timezone.utc) + timedelta(days=1),
        )
        hidden = Assessment(
            name="Draft exam",
            category="exam",
            answer_format="multiple_choice",
            is_active=False,
        )
        db.add_all([quiz, essay, exercise, hidden])
        db.commit()

        yield SimpleNamespace(
            student_id=student.id,
            other_student_id=other_student.id,
            admin_id=admin.id,
            quiz_id=quiz.id,
            essay_id=essay.id,
            exercise_id=exercise.id,
            hidden_id=hidden.id,
        )
    finally:
        db.close()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def oracle():
    return FakeOracle()


@pytest.fixture()
def file_store(tmp_path):
    return LocalFileStore(tmp_path / "uploads", "http://testserver")


@pytest.fixture()
def client(oracle, file_store):
    """Test client wired to the test DB, a scripted oracle and a temp file store."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oracle] = lambda: oracle
    app.dependency_overrides[get_file_store] = lambda: file_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def login(client, email: str, password: str = "password123") -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def student_headers(client):
    return auth_header(login(client, "student1@example.com"))


@pytest.fixture()
def other_student_headers(client):
    return auth_header(login(client, "student2@example.com"))


@pytest.fixture()
def admin_headers(client):
    return auth_header(login(client, "admin@example.com"))


def structured_payload(score: float = 6.67) -> dict:
    return {
        "answers": [
            {
                "question": {"text": "Capital of Vietnam?", "options": ["A. Hue", "B. Hanoi"]},
                "user_answer": "B. Hanoi",
                "correct_answer": "B. Hanoi",
                "status": "correct",
            },
            {"question": {"text": "6 x 7?"}, "user_answer": "41", "status": "incorrect"},
            {"question": {"text": "Name the process plants use to make sugar."}},
        ],
        "score": score,
        "duration_seconds": 540,
    }
