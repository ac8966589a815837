from sqlalchemy import Column, String, Text, Integer, Float, DateTime, JSON, Index
from sqlalchemy.sql import func
import uuid
import enum
from codejudge.db.base import Base


class SubmissionStatus(str, enum.Enum):
    pending = "pending"
    running = "running"
    accepted = "accepted"
    wrong_answer = "wrong_answer"
    time_limit_exceeded = "time_limit_exceeded"
    memory_limit_exceeded = "memory_limit_exceeded"
    runtime_error = "runtime_error"
    compilation_error = "compilation_error"
    infrastructure_error = "infrastructure_error"

    @property
    def is_terminal(self) -> bool:
        return self not in NON_TERMINAL_STATUSES


NON_TERMINAL_STATUSES = frozenset({SubmissionStatus.pending, SubmissionStatus.running})
TERMINAL_STATUSES = frozenset(s for s in SubmissionStatus if s not in NON_TERMINAL_STATUSES)


class TerminalReason(str, enum.Enum):
    """Why a submission became terminal; separates judge-infrastructure outcomes from verdicts."""

    verdict = "verdict"
    judge_timeout = "judge_timeout"
    judge_error = "judge_error"
    fetch_failed = "fetch_failed"
    dispatch_failed = "dispatch_failed"


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_user_problem", "user_id", "problem_id"),
        Index("ix_submissions_problem_status", "problem_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    problem_id = Column(String(36), nullable=False, index=True)
    source_code = Column(Text, nullable=False)
    language = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, default=SubmissionStatus.pending.value, index=True)
    judge_handle = Column(String(255), nullable=True, index=True)
    total_test_cases = Column(Integer, nullable=False, default=0)
    passed_test_cases = Column(Integer, nullable=True)
    score = Column(Integer, nullable=True)
    execution_time_ms = Column(Float, nullable=True)
    memory_used_kb = Column(Integer, nullable=True)
    test_case_results = Column(JSON, nullable=False, default=list)
    compilation_error = Column(Text, nullable=True)
    runtime_error = Column(Text, nullable=True)
    judge_message = Column(Text, nullable=True)
    terminal_reason = Column(String(32), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Submission(id={self.id}, status={self.status})>"
