from __future__ import annotations

import enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class CoarseStatus(str, enum.Enum):
    """Judge-level progress of a dispatched job."""

    queued = "queued"
    running = "running"
    finished = "finished"
    error = "error"

    @property
    def is_pending(self) -> bool:
        return self in (CoarseStatus.queued, CoarseStatus.running)


class JudgeVerdict(str, enum.Enum):
    """The judge's own overall verdict for a finished job."""

    accepted = "accepted"
    wrong_answer = "wrong_answer"
    time_limit_exceeded = "time_limit_exceeded"
    memory_limit_exceeded = "memory_limit_exceeded"
    runtime_error = "runtime_error"
    compilation_error = "compilation_error"
    unknown = "unknown"


class DispatchRequest(BaseModel):
    source_code: str
    runtime_id: int
    stdin: str = ""


class Judge0SubmissionRequest(BaseModel):
    source_code: str
    language_id: int
    stdin: Optional[str] = None
    cpu_time_limit: Optional[float] = None
    memory_limit: Optional[int] = None
    redirect_stderr_to_stdout: Optional[bool] = None


class SphereSubmissionRequest(BaseModel):
    source: str
    language: int
    input: str = ""
    wait: bool = False


class RawJudgeResult(BaseModel):
    """Provider-neutral snapshot of a judge job.

    ``time_ms`` is total wall time in milliseconds and ``memory_kb`` peak memory in kilobytes;
    both are only meaningful once ``coarse_status`` is ``finished``.
    """

    handle: str
    coarse_status: CoarseStatus
    verdict: JudgeVerdict = JudgeVerdict.unknown
    output: Optional[str] = None
    time_ms: Optional[float] = None
    memory_kb: Optional[int] = None
    compile_error: Optional[str] = None
    runtime_error: Optional[str] = None
    message: Optional[str] = None
    raw: Dict[str, Any] = {}
