"""Turn a finished judge result into the canonical terminal submission fields.

The judge runs every test case in one job: inputs are joined with the output delimiter and the
combined stdout is split back by the same delimiter, so the n-th output line belongs to the n-th
test case. Per-case timing is the total divided evenly; the judge does not report it per case.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from codejudge.features.judge.schemas import JudgeVerdict, RawJudgeResult
from codejudge.features.problems.schemas import ProblemCaseSchema

from .models import SubmissionStatus, TerminalReason
from .schemas import CaseResultSchema, percent


def aggregate_input(test_cases: Sequence[ProblemCaseSchema], delimiter: str = "\n") -> str:
    return delimiter.join(tc.input for tc in test_cases)


def split_output(output: Optional[str], count: int, delimiter: str = "\n") -> List[str]:
    """Split combined stdout into exactly ``count`` positional outputs, padding with ''."""
    parts = (output or "").split(delimiter) if output else []
    if len(parts) < count:
        parts.extend([""] * (count - len(parts)))
    return parts[:count]


def outputs_match(actual: str, expected: str) -> bool:
    return (actual or "").strip() == (expected or "").strip()


def canonical_status(raw: RawJudgeResult, all_passed: bool, total: int) -> SubmissionStatus:
    """Status precedence: compile > runtime > time limit > memory limit > accepted > wrong answer."""
    verdict = raw.verdict
    if raw.compile_error or verdict is JudgeVerdict.compilation_error:
        return SubmissionStatus.compilation_error
    if raw.runtime_error or verdict is JudgeVerdict.runtime_error:
        return SubmissionStatus.runtime_error
    if verdict is JudgeVerdict.time_limit_exceeded:
        return SubmissionStatus.time_limit_exceeded
    if verdict is JudgeVerdict.memory_limit_exceeded:
        return SubmissionStatus.memory_limit_exceeded
    if verdict is JudgeVerdict.accepted and all_passed and total > 0:
        return SubmissionStatus.accepted
    return SubmissionStatus.wrong_answer


class ResultInterpreter:
    """Pure mapping from (raw judge result, ordered test cases) to a terminal update."""

    def __init__(self, delimiter: str = "\n") -> None:
        self.delimiter = delimiter

    def case_results(self, raw: RawJudgeResult, test_cases: Sequence[ProblemCaseSchema]) -> List[CaseResultSchema]:
        total = len(test_cases)
        actuals = split_output(raw.output, total, self.delimiter)
        per_case_time = (raw.time_ms or 0.0) / total if total else 0.0
        memory = raw.memory_kb or 0
        return [
            CaseResultSchema(
                input=tc.input,
                expected_output=tc.expected_output,
                actual_output=actual.strip(),
                status="passed" if outputs_match(actual, tc.expected_output) else "failed",
                execution_time=per_case_time,
                memory_used=memory,
                is_hidden=tc.is_hidden,
            )
            for tc, actual in zip(test_cases, actuals)
        ]

    def interpret(
        self,
        raw: RawJudgeResult,
        test_cases: Sequence[ProblemCaseSchema],
        *,
        completed_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        results = self.case_results(raw, test_cases)
        total = len(test_cases)
        passed = sum(1 for r in results if r.status == "passed")
        status = canonical_status(raw, passed == total, total)

        if status in (SubmissionStatus.accepted, SubmissionStatus.wrong_answer):
            score = percent(passed, total)
        else:
            score = 0

        compile_error = None
        runtime_error = None
        if status is SubmissionStatus.compilation_error:
            compile_error = raw.compile_error or raw.message or "Compilation failed"
        elif status is SubmissionStatus.runtime_error:
            runtime_error = raw.runtime_error or raw.message or "Runtime error"

        return {
            "status": status.value,
            "terminal_reason": TerminalReason.verdict.value,
            "passed_test_cases": passed,
            "score": score,
            "execution_time_ms": raw.time_ms or 0.0,
            "memory_used_kb": raw.memory_kb or 0,
            "test_case_results": [r.model_dump() for r in results],
            "compilation_error": compile_error,
            "runtime_error": runtime_error,
            "completed_at": completed_at or datetime.now(timezone.utc),
        }


def infrastructure_outcome(
    status: SubmissionStatus,
    reason: TerminalReason,
    message: str,
    *,
    completed_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Terminal update for outcomes where the judge never produced a usable verdict.

    A ``runtime_error`` outcome also carries the message in ``runtime_error`` so clients that only
    read that column still see why.
    """
    fields: Dict[str, Any] = {
        "status": status.value,
        "terminal_reason": reason.value,
        "passed_test_cases": 0,
        "score": 0,
        "judge_message": message,
        "completed_at": completed_at or datetime.now(timezone.utc),
    }
    if status is SubmissionStatus.runtime_error:
        fields["runtime_error"] = message
    return fields
