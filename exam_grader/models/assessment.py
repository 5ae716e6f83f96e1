from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func
from sqlalchemy.orm import relationship

from exam_grader.db.base_class import Base


class Assessment(Base):
    """An exam or an exercise; both share this shape."""

    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(255), nullable=False)
    category = Column(String(20), nullable=False, default="exam", index=True)  # exam | exercise
    answer_format = Column(String(20), nullable=False, default="multiple_choice")  # multiple_choice | written | essay

    description = Column(Text, nullable=True)
    # free text; may carry a duration directive such as "45 minutes"
    instructions = Column(Text, nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=True)
    model_id = Column(String(100), nullable=True)

    allow_references = Column(Boolean, nullable=False, default=False)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    question_count = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    results = relationship("Result", back_populates="assessment", cascade="all, delete-orphan")

    @property
    def is_essay(self) -> bool:
        return self.answer_format == "essay"
