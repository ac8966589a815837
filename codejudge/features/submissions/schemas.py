from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from codejudge.common.schemas import Pagination

HIDDEN_PLACEHOLDER = "[hidden]"


def performance_rating(status: Optional[str], execution_time_ms: Optional[float]) -> str:
	if status != "accepted" or execution_time_ms is None:
		return "N/A"
	if execution_time_ms < 100:
		return "Excellent"
	if execution_time_ms < 500:
		return "Good"
	if execution_time_ms < 1000:
		return "Average"
	return "Slow"


def percent(passed: Optional[int], total: Optional[int]) -> int:
	"""Half-up rounded percentage; 0 when there is nothing to divide by."""
	if not total:
		return 0
	return int(100 * (passed or 0) / total + 0.5)


class SubmitRequest(BaseModel):
	# Optional so that missing fields surface as MissingFieldError (400) rather than a 422
	problem_id: Optional[str] = None
	source_code: Optional[str] = None
	language: Optional[str] = None


class SubmitResponse(BaseModel):
	submission_id: str
	status: str
	judge_handle: Optional[str] = None


class CaseResultSchema(BaseModel):
	input: str = ""
	expected_output: str = ""
	actual_output: str = ""
	status: str  # passed | failed
	execution_time: float = 0.0
	memory_used: int = 0
	is_hidden: bool = False

	def redacted(self) -> "CaseResultSchema":
		if not self.is_hidden:
			return self
		return self.model_copy(update={"input": HIDDEN_PLACEHOLDER, "expected_output": HIDDEN_PLACEHOLDER})


class SubmissionResponse(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	user_id: str
	problem_id: str
	language: str
	source_code: str
	status: str
	terminal_reason: Optional[str] = None
	judge_handle: Optional[str] = None
	total_test_cases: int = 0
	passed_test_cases: Optional[int] = None
	score: Optional[int] = None
	execution_time: Optional[float] = None
	memory_used: Optional[int] = None
	test_case_results: List[CaseResultSchema] = Field(default_factory=list)
	compilation_error: Optional[str] = None
	runtime_error: Optional[str] = None
	judge_message: Optional[str] = None
	submitted_at: Optional[datetime] = None
	completed_at: Optional[datetime] = None
	success_rate: int = 0
	performance_rating: str = "N/A"

	@classmethod
	def from_record(cls, record) -> "SubmissionResponse":
		results = [CaseResultSchema(**item).redacted() for item in (record.test_case_results or [])]
		return cls(
			id=record.id,
			user_id=record.user_id,
			problem_id=record.problem_id,
			language=record.language,
			source_code=record.source_code,
			status=record.status,
			terminal_reason=record.terminal_reason,
			judge_handle=record.judge_handle,
			total_test_cases=record.total_test_cases or 0,
			passed_test_cases=record.passed_test_cases,
			score=record.score,
			execution_time=record.execution_time_ms,
			memory_used=record.memory_used_kb,
			test_case_results=results,
			compilation_error=record.compilation_error,
			runtime_error=record.runtime_error,
			judge_message=record.judge_message,
			submitted_at=record.submitted_at,
			completed_at=record.completed_at,
			success_rate=percent(record.passed_test_cases, record.total_test_cases),
			performance_rating=performance_rating(record.status, record.execution_time_ms),
		)


class SubmissionHistoryResponse(BaseModel):
	items: List[SubmissionResponse] = Field(default_factory=list)
	pagination: Pagination
