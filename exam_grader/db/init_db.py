from exam_grader.db.base import Base
from exam_grader.db.session import engine


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
