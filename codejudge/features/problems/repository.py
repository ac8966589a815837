from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker, selectinload

from codejudge.common.errors import NotCodingProblemError, ProblemNotFoundError

from .models import CodingProblem
from .schemas import CodingProblemSchema, ProblemCaseSchema

CODING_KIND = "coding"


class ProblemCatalog:
    """Read-only access to coding problems and their ordered test cases."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def find(self, problem_id: str) -> Optional[CodingProblem]:
        with self._session_factory() as db:
            stmt = (
                select(CodingProblem)
                .options(selectinload(CodingProblem.test_cases))
                .where(CodingProblem.id == problem_id)
            )
            return db.execute(stmt).scalar_one_or_none()

    def get_coding_problem(self, problem_id: str) -> CodingProblemSchema:
        problem = self.find(problem_id)
        if problem is None:
            raise ProblemNotFoundError(problem_id)
        if (problem.kind or "").lower() != CODING_KIND:
            raise NotCodingProblemError(problem_id)
        return CodingProblemSchema(
            id=problem.id,
            title=problem.title,
            time_limit_s=problem.time_limit_s,
            memory_limit_kb=problem.memory_limit_kb,
            test_cases=[
                ProblemCaseSchema(
                    id=tc.id,
                    input=tc.input or "",
                    expected_output=tc.expected_output or "",
                    is_hidden=bool(tc.is_hidden),
                )
                for tc in problem.test_cases
            ],
        )
