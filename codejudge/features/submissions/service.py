from __future__ import annotations

import logging
import math
from typing import Dict, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from codejudge.common.errors import (
    CodeJudgeError,
    DispatchError,
    JudgingCapacityError,
    MissingFieldError,
    ProblemMissingTestCasesError,
    SubmissionDispatchFailed,
    SubmissionNotFoundError,
)
from codejudge.common.schemas import Pagination
from codejudge.features.judge.client import JudgeClient
from codejudge.features.judge.schemas import DispatchRequest
from codejudge.features.languages.registry import LanguageRegistry, canonical_language
from codejudge.features.problems.repository import ProblemCatalog
from codejudge.features.problems.schemas import ProblemCaseSchema
from codejudge.jobs.runner import BackgroundJobRunner, ImmediateJobRunner

from .interpreter import aggregate_input, infrastructure_outcome
from .models import SubmissionStatus, TerminalReason
from .polling import PollingScheduler
from .repository import SubmissionRepository
from .schemas import SubmissionHistoryResponse, SubmissionResponse, SubmitResponse

logger = logging.getLogger("submissions")


def _require(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise MissingFieldError(field_name)
    return value


class SubmissionService:
    """Entry point for judging: validate, persist, dispatch, then hand off to the poll loop."""

    def __init__(
        self,
        repository: SubmissionRepository,
        catalog: ProblemCatalog,
        registry: LanguageRegistry,
        judge_client: JudgeClient,
        scheduler: PollingScheduler,
        runner: BackgroundJobRunner | ImmediateJobRunner,
        *,
        delimiter: str = "\n",
        history_max_limit: int = 100,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.registry = registry
        self.judge_client = judge_client
        self.scheduler = scheduler
        self.runner = runner
        self.delimiter = delimiter
        self.history_max_limit = history_max_limit

    async def submit(
        self,
        user_id: str,
        problem_id: Optional[str],
        source_code: Optional[str],
        language: Optional[str],
    ) -> SubmitResponse:
        # Input errors are raised before anything is written.
        problem_id = _require(problem_id, "problem_id")
        source_code = _require(source_code, "source_code")
        language = _require(language, "language")
        runtime_id = self.registry.resolve(language)

        problem = await run_in_threadpool(self.catalog.get_coding_problem, problem_id)
        if not problem.test_cases:
            raise ProblemMissingTestCasesError(problem_id)
        test_cases = list(problem.test_cases)

        # Refuse before writing anything: a record created now could not be polled promptly.
        if self.runner.saturated:
            logger.warning("submission.rejected user=%s problem=%s reason=capacity", user_id, problem_id)
            raise JudgingCapacityError(self.runner.max_concurrency)

        record = await run_in_threadpool(
            self.repository.create,
            user_id=user_id,
            problem_id=problem_id,
            source_code=source_code,
            language=canonical_language(language),
            total_test_cases=len(test_cases),
        )

        request = DispatchRequest(
            source_code=source_code,
            runtime_id=runtime_id,
            stdin=aggregate_input(test_cases, self.delimiter),
        )
        try:
            handle = await self.judge_client.dispatch(request)
        except DispatchError as exc:
            logger.warning("submission.dispatch_failed id=%s error=%s", record.id, exc)
            await run_in_threadpool(
                self.repository.finalize,
                record.id,
                infrastructure_outcome(
                    SubmissionStatus.infrastructure_error,
                    TerminalReason.dispatch_failed,
                    exc.message,
                ),
            )
            raise SubmissionDispatchFailed(record.id, exc.message) from exc
        dispatched_at = self.scheduler.clock()

        if not await run_in_threadpool(self.repository.mark_running, record.id, handle):
            # Someone else already moved the record on; its current state is authoritative.
            current = await run_in_threadpool(self.repository.get, record.id)
            logger.warning(
                "submission.not_pending id=%s handle=%s status=%s; not polling",
                record.id,
                handle,
                current.status,
            )
            return SubmitResponse(submission_id=record.id, status=current.status, judge_handle=current.judge_handle)

        await self._schedule(record.id, handle, test_cases, dispatched_at=dispatched_at)
        return SubmitResponse(submission_id=record.id, status=SubmissionStatus.running.value, judge_handle=handle)

    async def _schedule(
        self,
        submission_id: str,
        handle: str,
        test_cases: Sequence[ProblemCaseSchema],
        *,
        dispatched_at: Optional[float] = None,
    ) -> None:
        async def job() -> None:
            await self.scheduler.run(submission_id, handle, test_cases, dispatched_at=dispatched_at)

        await self.runner.submit(f"poll:{submission_id}", job)
        logger.info("submission.scheduled id=%s handle=%s", submission_id, handle)

    def get_status(self, submission_id: str, user_id: str) -> SubmissionResponse:
        record = self.repository.get(submission_id)
        if record.user_id != user_id:
            # Do not reveal that someone else's submission exists.
            raise SubmissionNotFoundError(submission_id)
        return SubmissionResponse.from_record(record)

    def history(
        self,
        user_id: str,
        *,
        problem_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> SubmissionHistoryResponse:
        page = max(1, page)
        limit = max(1, min(limit, self.history_max_limit))
        items, total = self.repository.list_by_user(user_id, problem_id=problem_id, page=page, limit=limit)
        return SubmissionHistoryResponse(
            items=[SubmissionResponse.from_record(item) for item in items],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if total else 0),
        )

    async def resume_inflight(self) -> Dict[str, int]:
        """Recover submissions a previous process left non-terminal.

        ``running`` records with a handle are polled again with a fresh deadline, since the
        original dispatch time is not persisted; ``pending`` ones never reached the judge and are
        closed as infrastructure errors. Recovery is not subject to the admission limit.
        """
        counts = {"resumed": 0, "closed": 0}
        for record in await run_in_threadpool(self.repository.list_inflight):
            if record.status == SubmissionStatus.running.value and record.judge_handle:
                try:
                    problem = await run_in_threadpool(self.catalog.get_coding_problem, record.problem_id)
                except CodeJudgeError as exc:
                    await run_in_threadpool(
                        self.repository.finalize,
                        record.id,
                        infrastructure_outcome(
                            SubmissionStatus.runtime_error,
                            TerminalReason.fetch_failed,
                            f"Cannot resume judging: {exc.message}",
                        ),
                    )
                    counts["closed"] += 1
                    continue
                await self._schedule(record.id, record.judge_handle, list(problem.test_cases))
                counts["resumed"] += 1
            else:
                await run_in_threadpool(
                    self.repository.finalize,
                    record.id,
                    infrastructure_outcome(
                        SubmissionStatus.infrastructure_error,
                        TerminalReason.dispatch_failed,
                        "Submission was never dispatched to the judge (service restarted)",
                    ),
                )
                counts["closed"] += 1
        if counts["resumed"] or counts["closed"]:
            logger.info("submission.recovery resumed=%d closed=%d", counts["resumed"], counts["closed"])
        return counts
