from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import uuid
from codejudge.db.base import Base


class CodingProblem(Base):
    __tablename__ = "coding_problems"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    kind = Column(String(32), nullable=False, default="coding")  # coding | mcqs | fill_in_blanks | true_false
    statement = Column(Text, nullable=True)
    time_limit_s = Column(Integer, nullable=True)
    memory_limit_kb = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    test_cases = relationship(
        "ProblemTestCase",
        back_populates="problem",
        cascade="all, delete-orphan",
        order_by="ProblemTestCase.position",
    )

    def __repr__(self):
        return f"<CodingProblem(id={self.id}, kind={self.kind})>"


class ProblemTestCase(Base):
    __tablename__ = "problem_test_cases"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    problem_id = Column(String(36), ForeignKey("coding_problems.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    input = Column(Text, nullable=False, default="")
    expected_output = Column(Text, nullable=False, default="")
    is_hidden = Column(Boolean, nullable=False, default=False)

    problem = relationship("CodingProblem", back_populates="test_cases")
