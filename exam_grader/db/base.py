# import every model here so Base.metadata knows about all tables
from exam_grader.db.base_class import Base  # noqa: F401
from exam_grader.models.assessment import Assessment  # noqa: F401
from exam_grader.models.result import Result  # noqa: F401
from exam_grader.models.user import User  # noqa: F401
