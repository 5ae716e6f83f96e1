import logging

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from exam_grader.core.config import UPLOAD_DIR
from exam_grader.core.errors import GradingError, grading_error_handler
from exam_grader.core.logging_middleware import LoggingMiddleware
from exam_grader.db.init_db import init_db
from exam_grader.routers.assessments import router as assessments_router
from exam_grader.routers.auth import router as auth_router
from exam_grader.routers.results import router as results_router
from exam_grader.routers.submissions import router as submissions_router
from exam_grader.services.file_store import URL_PREFIX

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Exam Grader")

# Middleware
app.add_middleware(LoggingMiddleware)

# Service errors -> JSON responses
app.add_exception_handler(GradingError, grading_error_handler)

# Essay uploads
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount(URL_PREFIX, StaticFiles(directory=UPLOAD_DIR), name="uploads")


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(assessments_router, tags=["assessments"])
app.include_router(submissions_router, tags=["submissions"])
app.include_router(results_router, tags=["results"])
