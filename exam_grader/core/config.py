import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

# DEV defaults: override through the environment in production.
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE = timedelta(minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/exam_grader.db")

# Essay uploads
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads")))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")

# Scoring oracle
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
DEFAULT_ORACLE_MODEL = os.getenv("DEFAULT_ORACLE_MODEL", "gemini-2.0-flash")

# Every Result score lives on this scale
SCORE_SCALE = 10

# Results statistics: pass mark and score distribution buckets [low, high)
PASS_SCORE = 5.0
SCORE_BUCKETS = ((0, 2), (2, 4), (4, 6), (6, 8), (8, 10))

# Late policy: (max minutes late inclusive, penalty type, amount)
# fixed -> points off, percentage -> percent of the original score off
LATE_PENALTY_TIERS = (
    (30, "fixed", 0.5),
    (60, "fixed", 2.0),
    (None, "percentage", 50.0),
)

TIME_EXPIRED_FEEDBACK = "SCORE: 0/10\n\nFEEDBACK:\n\nTime ran out before anything was submitted."
POLICY_REFUSAL_FEEDBACK = (
    "This submission could not be graded automatically because the grading "
    "service flagged its content under its safety policy. Please contact your teacher."
)
