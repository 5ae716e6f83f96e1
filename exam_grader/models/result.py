from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from exam_grader.db.base_class import Base


class Result(Base):
    __tablename__ = "results"

    id = Column(Integer, primary_key=True, index=True)

    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_name = Column(String(255), nullable=False)

    # structured | essay | time_expired, fixed at submission time
    kind = Column(String(20), nullable=False)

    # always on the 0-10 scale
    score = Column(Float, nullable=False, default=0.0)
    answers = Column(JSON, nullable=False, default=list)
    duration_seconds = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    graded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("assessment_id", "user_id", name="uq_result_assessment_user"),
    )

    assessment = relationship("Assessment", back_populates="results")
    user = relationship("User", back_populates="results")
