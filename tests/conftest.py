import sys
import os

# Ensure repo root on sys.path for imports like `codejudge...`
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from typing import List, Optional, Sequence, Tuple, Union

import pytest

from codejudge.core.config import PollingConfig
from codejudge.db.session import build_engine, build_session_factory, create_all
from codejudge.features.judge.schemas import CoarseStatus, DispatchRequest, JudgeVerdict, RawJudgeResult
from codejudge.features.languages.registry import JUDGE0_RUNTIMES, LanguageRegistry
from codejudge.features.problems.models import CodingProblem, ProblemTestCase
from codejudge.features.problems.repository import ProblemCatalog
from codejudge.features.submissions.interpreter import ResultInterpreter
from codejudge.features.submissions.polling import PollingScheduler
from codejudge.features.submissions.repository import SubmissionRepository
from codejudge.features.submissions.service import SubmissionService
from codejudge.jobs.runner import ImmediateJobRunner


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


def seed_problem(
    session_factory,
    cases: Sequence[Tuple[str, str, bool]] = (("1 2", "3", False), ("3 4", "7", True)),
    *,
    kind: str = "coding",
    title: str = "Sum",
) -> str:
    with session_factory() as db:
        problem = CodingProblem(title=title, kind=kind)
        for position, (stdin, expected, hidden) in enumerate(cases):
            problem.test_cases.append(
                ProblemTestCase(position=position, input=stdin, expected_output=expected, is_hidden=hidden)
            )
        db.add(problem)
        db.commit()
        return problem.id


@pytest.fixture
def problem_id(session_factory):
    return seed_problem(session_factory)


def finished(output: str, verdict: JudgeVerdict = JudgeVerdict.accepted, **kwargs) -> RawJudgeResult:
    kwargs.setdefault("time_ms", 40.0)
    kwargs.setdefault("memory_kb", 2048)
    return RawJudgeResult(
        handle=kwargs.pop("handle", "tok-1"),
        coarse_status=CoarseStatus.finished,
        verdict=verdict,
        output=output,
        **kwargs,
    )


def pending_result(status: CoarseStatus = CoarseStatus.queued) -> RawJudgeResult:
    return RawJudgeResult(handle="tok-1", coarse_status=status)


class FakeJudge:
    """Scripted judge. ``results`` are returned in order; the last one repeats."""

    def __init__(
        self,
        results: Optional[List[Union[RawJudgeResult, Exception]]] = None,
        *,
        dispatch_error: Optional[Exception] = None,
        handle: str = "tok-1",
    ) -> None:
        self.results = list(results or [finished("3\n7")])
        self.dispatch_error = dispatch_error
        self.handle = handle
        self.dispatched: List[DispatchRequest] = []
        self.fetched: List[str] = []

    async def dispatch(self, request: DispatchRequest) -> str:
        self.dispatched.append(request)
        if self.dispatch_error is not None:
            raise self.dispatch_error
        return self.handle

    async def fetch(self, handle: str) -> RawJudgeResult:
        self.fetched.append(handle)
        item = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        return None


class RecordingSleep:
    """Sleep double that advances a virtual clock instead of waiting."""

    def __init__(self) -> None:
        self.calls: List[float] = []
        self.now = 0.0

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.now += seconds

    def clock(self) -> float:
        return self.now

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def polling_config():
    return PollingConfig(initial_delay_s=5, interval_s=10, max_attempts=4)


@pytest.fixture
def repository(session_factory):
    return SubmissionRepository(session_factory)


def build_service(session_factory, judge, sleep, polling_config, runner=None):
    repository = SubmissionRepository(session_factory)
    scheduler = PollingScheduler(
        judge, repository, ResultInterpreter(), polling_config, sleep=sleep, clock=sleep.clock
    )
    return SubmissionService(
        repository,
        ProblemCatalog(session_factory),
        LanguageRegistry(JUDGE0_RUNTIMES),
        judge,
        scheduler,
        runner or ImmediateJobRunner(),
    )

