"""Domain error taxonomy shared by services and endpoints."""

from __future__ import annotations

from typing import Optional


class CodeJudgeError(Exception):
    """Base class for every error raised deliberately by this service."""

    code = "codejudge_error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


# Input errors: raised before any side effect.

class MissingFieldError(CodeJudgeError):
    code = "missing_field"

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Missing required field: {field_name}")
        self.field_name = field_name


class UnsupportedLanguageError(CodeJudgeError):
    code = "unsupported_language"

    def __init__(self, language: str) -> None:
        super().__init__(f"Unsupported language: {language}")
        self.language = language


class ProblemNotFoundError(CodeJudgeError):
    code = "problem_not_found"

    def __init__(self, problem_id: str) -> None:
        super().__init__(f"Problem {problem_id} not found")
        self.problem_id = problem_id


class NotCodingProblemError(CodeJudgeError):
    code = "not_coding_problem"

    def __init__(self, problem_id: str) -> None:
        super().__init__(f"Problem {problem_id} is not a coding problem")
        self.problem_id = problem_id


class ProblemMissingTestCasesError(CodeJudgeError):
    code = "problem_missing_test_cases"

    def __init__(self, problem_id: str) -> None:
        super().__init__(f"Problem {problem_id} has no test cases")
        self.problem_id = problem_id


# Judge transport errors.

class JudgeClientError(CodeJudgeError):
    code = "judge_client_error"


class DispatchError(JudgeClientError):
    code = "dispatch_failed"


class JudgeFetchError(JudgeClientError):
    code = "judge_fetch_failed"


# Store / orchestration errors.

class SubmissionNotFoundError(CodeJudgeError):
    code = "submission_not_found"

    def __init__(self, submission_id: str) -> None:
        super().__init__(f"Submission {submission_id} not found")
        self.submission_id = submission_id


class JudgingCapacityError(CodeJudgeError):
    """Every polling slot is taken; nothing was written."""

    code = "judging_capacity_exceeded"

    def __init__(self, limit: int) -> None:
        super().__init__(f"Too many submissions are being judged (limit {limit}); try again shortly")
        self.limit = limit


class SubmissionDispatchFailed(CodeJudgeError):
    """Dispatch failed after the record was created; the record is already terminal."""

    code = "dispatch_failed"

    def __init__(self, submission_id: str, reason: str) -> None:
        super().__init__(f"Failed to submit to code execution service: {reason}")
        self.submission_id = submission_id
        self.reason = reason


__all__ = [
    "CodeJudgeError",
    "MissingFieldError",
    "UnsupportedLanguageError",
    "ProblemNotFoundError",
    "NotCodingProblemError",
    "ProblemMissingTestCasesError",
    "JudgeClientError",
    "DispatchError",
    "JudgeFetchError",
    "SubmissionNotFoundError",
    "JudgingCapacityError",
    "SubmissionDispatchFailed",
]
