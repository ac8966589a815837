from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from codejudge.common.errors import JudgeClientError
from codejudge.core.config import PollingConfig
from codejudge.features.judge.client import JudgeClient
from codejudge.features.judge.schemas import CoarseStatus, RawJudgeResult
from codejudge.features.problems.schemas import ProblemCaseSchema

from .interpreter import ResultInterpreter, infrastructure_outcome
from .models import SubmissionStatus, TerminalReason
from .repository import SubmissionRepository

logger = logging.getLogger("submissions.polling")

Sleep = Callable[[float], Awaitable[Any]]
Clock = Callable[[], float]

JUDGE_TIMEOUT_MESSAGE = "Execution timeout - the judge did not finish within {seconds:.0f}s ({attempts} polls)"


class PollingScheduler:
    """Per-submission poll loop: initial grace delay, then bounded fetch attempts.

    The loop is bounded twice: by ``max_attempts`` and by a wall-clock deadline of
    ``config.deadline_seconds()`` measured from dispatch. Sleeps are shortened and each fetch is
    cut off so that the terminal write never lands after the deadline, however slow the judge is.

    ``run`` always ends with exactly one terminal write attempt and never raises (other than
    cancellation), so a dispatched submission cannot be left ``running`` by this loop.
    """

    def __init__(
        self,
        judge_client: JudgeClient,
        repository: SubmissionRepository,
        interpreter: ResultInterpreter,
        config: PollingConfig,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self.judge_client = judge_client
        self.repository = repository
        self.interpreter = interpreter
        self.config = config
        self._sleep = sleep
        self.clock = clock

    async def run(
        self,
        submission_id: str,
        handle: str,
        test_cases: Sequence[ProblemCaseSchema],
        *,
        dispatched_at: Optional[float] = None,
    ) -> bool:
        """Poll ``handle`` until terminal; returns whether the terminal write took effect.

        ``dispatched_at`` is a reading of ``self.clock`` taken when the judge accepted the job;
        time spent waiting to be scheduled counts against the deadline.
        """
        started = self.clock() if dispatched_at is None else dispatched_at
        deadline = started + self.config.deadline_seconds()
        logger.info(
            "poll.start submission=%s handle=%s max_attempts=%d deadline_in=%.1fs",
            submission_id,
            handle,
            self.config.max_attempts,
            deadline - self.clock(),
        )
        try:
            fields = await self._poll(submission_id, handle, test_cases, deadline)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("poll.crashed submission=%s handle=%s", submission_id, handle)
            fields = infrastructure_outcome(
                SubmissionStatus.runtime_error,
                TerminalReason.fetch_failed,
                f"Judging failed: {exc}",
            )
        return await self._write(submission_id, handle, fields)

    async def _poll(
        self,
        submission_id: str,
        handle: str,
        test_cases: Sequence[ProblemCaseSchema],
        deadline: float,
    ) -> Dict[str, Any]:
        for attempt in range(1, self.config.max_attempts + 1):
            remaining = deadline - self.clock()
            if remaining <= 0:
                break
            await self._sleep(min(self.config.delay_before_attempt(attempt), remaining))

            remaining = deadline - self.clock()
            if remaining <= 0:
                break
            try:
                raw = await self._fetch(handle, remaining)
            except asyncio.TimeoutError:
                logger.warning(
                    "poll.fetch_deadline submission=%s handle=%s attempt=%d",
                    submission_id,
                    handle,
                    attempt,
                )
                break
            except JudgeClientError as exc:
                logger.warning(
                    "poll.fetch_failed submission=%s handle=%s attempt=%d error=%s",
                    submission_id,
                    handle,
                    attempt,
                    exc,
                )
                return infrastructure_outcome(
                    SubmissionStatus.runtime_error,
                    TerminalReason.fetch_failed,
                    f"Failed to fetch judge result: {exc}",
                )

            logger.debug(
                "poll.attempt submission=%s handle=%s attempt=%d/%d coarse=%s",
                submission_id,
                handle,
                attempt,
                self.config.max_attempts,
                raw.coarse_status.value,
            )
            if raw.coarse_status is CoarseStatus.finished:
                return self.interpreter.interpret(raw, test_cases)
            if raw.coarse_status is CoarseStatus.error:
                return infrastructure_outcome(
                    SubmissionStatus.runtime_error,
                    TerminalReason.judge_error,
                    raw.message or raw.runtime_error or "Judge reported an internal error",
                )

        logger.warning(
            "poll.timeout submission=%s handle=%s attempts=%d",
            submission_id,
            handle,
            self.config.max_attempts,
        )
        return infrastructure_outcome(
            SubmissionStatus.time_limit_exceeded,
            TerminalReason.judge_timeout,
            JUDGE_TIMEOUT_MESSAGE.format(
                seconds=self.config.deadline_seconds(), attempts=self.config.max_attempts
            ),
        )

    async def _fetch(self, handle: str, timeout: float) -> RawJudgeResult:
        return await asyncio.wait_for(self.judge_client.fetch(handle), timeout=timeout)

    async def _write(self, submission_id: str, handle: str, fields: Dict[str, Any]) -> bool:
        try:
            written = await run_in_threadpool(self.repository.finalize, submission_id, fields)
        except Exception:
            logger.exception("poll.write_failed submission=%s handle=%s", submission_id, handle)
            return False
        logger.info(
            "poll.done submission=%s handle=%s status=%s written=%s",
            submission_id,
            handle,
            fields.get("status"),
            written,
        )
        return written
