from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ProblemCaseSchema(BaseModel):
	id: Optional[str] = None
	input: str = ""
	expected_output: str = ""
	is_hidden: bool = False


class CodingProblemSchema(BaseModel):
	id: str
	title: str
	time_limit_s: Optional[int] = None
	memory_limit_kb: Optional[int] = None
	test_cases: List[ProblemCaseSchema] = Field(default_factory=list)
