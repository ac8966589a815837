import asyncio
import threading
import time

import pytest

from codejudge.common.errors import JudgeFetchError
from codejudge.core.config import PollingConfig
from codejudge.features.judge.schemas import CoarseStatus, JudgeVerdict, RawJudgeResult
from codejudge.features.problems.repository import ProblemCatalog
from codejudge.features.submissions.interpreter import ResultInterpreter
from codejudge.features.submissions.polling import PollingScheduler

from conftest import FakeJudge, finished, pending_result

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def running_submission(session_factory, repository, problem_id):
    problem = ProblemCatalog(session_factory).get_coding_problem(problem_id)
    record = repository.create(
        user_id="user-1",
        problem_id=problem_id,
        source_code="print(sum(map(int, input().split())))",
        language="python",
        total_test_cases=len(problem.test_cases),
    )
    repository.mark_running(record.id, "tok-1")
    return record.id, problem.test_cases


def _scheduler(judge, repository, polling_config, sleep):
    return PollingScheduler(judge, repository, ResultInterpreter(), polling_config, sleep=sleep, clock=sleep.clock)


@pytest.mark.anyio("asyncio")
async def test_finished_on_first_poll_writes_verdict(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission
    judge = FakeJudge([finished("3\n7")])

    written = await _scheduler(judge, repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    record = repository.get(submission_id)
    assert written is True
    assert sleep.calls == [polling_config.initial_delay_s]
    assert record.status == "accepted"
    assert record.terminal_reason == "verdict"
    assert record.passed_test_cases == record.total_test_cases == 2
    assert record.score == 100
    assert record.completed_at is not None
    assert len(record.test_case_results) == 2


@pytest.mark.anyio("asyncio")
async def test_polls_until_finished(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission
    judge = FakeJudge([pending_result(), pending_result(CoarseStatus.running), finished("3\n8", verdict=JudgeVerdict.wrong_answer)])

    await _scheduler(judge, repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    record = repository.get(submission_id)
    assert len(judge.fetched) == 3
    assert sleep.calls == [5, 10, 10]
    assert record.status == "wrong_answer"
    assert record.score == 50


@pytest.mark.anyio("asyncio")
async def test_judge_that_never_finishes_times_out_after_max_attempts(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission
    judge = FakeJudge([pending_result(CoarseStatus.running)])

    await _scheduler(judge, repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    record = repository.get(submission_id)
    assert len(judge.fetched) == polling_config.max_attempts
    assert sleep.total <= polling_config.initial_delay_s + polling_config.max_attempts * polling_config.interval_s
    assert sleep.total == polling_config.worst_case_seconds()
    assert record.status == "time_limit_exceeded"
    assert record.terminal_reason == "judge_timeout"
    assert "did not finish" in record.judge_message
    assert record.runtime_error is None and record.compilation_error is None
    assert record.score == 0
    assert record.test_case_results == []


@pytest.mark.anyio("asyncio")
async def test_fetch_error_stops_polling_with_runtime_error(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission
    judge = FakeJudge([pending_result(), JudgeFetchError("malformed payload"), finished("3\n7")])

    await _scheduler(judge, repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    record = repository.get(submission_id)
    assert len(judge.fetched) == 2
    assert record.status == "runtime_error"
    assert record.terminal_reason == "fetch_failed"
    assert "malformed payload" in record.judge_message
    assert record.runtime_error == record.judge_message


@pytest.mark.anyio("asyncio")
async def test_judge_error_status_is_runtime_error(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission
    judge = FakeJudge([RawJudgeResult(handle="tok-1", coarse_status=CoarseStatus.error, message="Internal Error")])

    await _scheduler(judge, repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    record = repository.get(submission_id)
    assert record.status == "runtime_error"
    assert record.terminal_reason == "judge_error"
    assert record.judge_message == "Internal Error"
    assert record.runtime_error == "Internal Error"


@pytest.mark.anyio("asyncio")
async def test_duplicate_tick_does_not_change_terminal_record(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission
    scheduler = _scheduler(FakeJudge([finished("3\n7")]), repository, polling_config, sleep)
    assert await scheduler.run(submission_id, "tok-1", cases) is True
    before = repository.get(submission_id)

    late = _scheduler(FakeJudge([finished("0\n0", verdict=JudgeVerdict.wrong_answer)]), repository, polling_config, sleep)
    assert await late.run(submission_id, "tok-1", cases) is False

    after = repository.get(submission_id)
    assert after.status == before.status == "accepted"
    assert after.score == before.score
    assert after.completed_at == before.completed_at
    assert after.test_case_results == before.test_case_results


@pytest.mark.anyio("asyncio")
async def test_unexpected_failures_never_escape(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission

    class ExplodingJudge(FakeJudge):
        async def fetch(self, handle):
            raise KeyError("surprise")

    await _scheduler(ExplodingJudge(), repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    record = repository.get(submission_id)
    assert record.status == "runtime_error"
    assert record.terminal_reason == "fetch_failed"


@pytest.mark.anyio("asyncio")
async def test_failing_terminal_write_is_logged_not_raised(repository, running_submission, polling_config, sleep, monkeypatch, caplog):
    submission_id, cases = running_submission

    def broken_finalize(*args, **kwargs):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(repository, "finalize", broken_finalize)
    written = await _scheduler(FakeJudge(), repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    assert written is False
    assert "poll.write_failed" in caplog.text


class SlowJudge(FakeJudge):
    """Each fetch costs ``cost`` seconds on the shared virtual clock."""

    def __init__(self, sleep, cost, results=None):
        super().__init__(results or [pending_result(CoarseStatus.running)])
        self.sleep = sleep
        self.cost = cost

    async def fetch(self, handle):
        self.sleep.now += self.cost
        return await super().fetch(handle)


@pytest.mark.anyio("asyncio")
async def test_slow_fetches_count_against_the_deadline(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission
    judge = SlowJudge(sleep, cost=12)

    await _scheduler(judge, repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    record = repository.get(submission_id)
    assert polling_config.deadline_seconds() == 45
    # 5 + 12 + 10 + 12 leaves 6s, so the third sleep is cut short and no third fetch happens.
    assert sleep.calls == [5, 10, 6]
    assert len(judge.fetched) == 2
    assert sleep.now == polling_config.deadline_seconds()
    assert record.status == "time_limit_exceeded"
    assert record.terminal_reason == "judge_timeout"


@pytest.mark.anyio("asyncio")
async def test_time_before_polling_starts_is_charged_from_dispatch(repository, running_submission, polling_config, sleep):
    submission_id, cases = running_submission
    judge = FakeJudge([finished("3\n7")])
    sleep.now = 100.0

    await _scheduler(judge, repository, polling_config, sleep).run(
        submission_id, "tok-1", cases, dispatched_at=60.0
    )

    record = repository.get(submission_id)
    assert sleep.calls == [5]
    assert judge.fetched == []
    assert record.status == "time_limit_exceeded"
    assert record.terminal_reason == "judge_timeout"


@pytest.mark.anyio("asyncio")
async def test_hanging_fetch_is_cut_off_at_the_deadline(repository, running_submission):
    submission_id, cases = running_submission

    class HangingJudge(FakeJudge):
        async def fetch(self, handle):
            self.fetched.append(handle)
            await asyncio.Event().wait()

    judge = HangingJudge()
    config = PollingConfig(initial_delay_s=0, interval_s=0.05, max_attempts=2)
    scheduler = PollingScheduler(judge, repository, ResultInterpreter(), config)

    started = time.monotonic()
    written = await scheduler.run(submission_id, "tok-1", cases)
    elapsed = time.monotonic() - started

    record = repository.get(submission_id)
    assert written is True
    assert judge.fetched == ["tok-1"]
    assert elapsed < 2
    assert record.status == "time_limit_exceeded"
    assert record.terminal_reason == "judge_timeout"


@pytest.mark.anyio("asyncio")
async def test_terminal_write_runs_off_the_event_loop_thread(repository, running_submission, polling_config, sleep, monkeypatch):
    submission_id, cases = running_submission
    write_threads = []
    finalize = repository.finalize

    def recording_finalize(*args, **kwargs):
        write_threads.append(threading.get_ident())
        return finalize(*args, **kwargs)

    monkeypatch.setattr(repository, "finalize", recording_finalize)
    written = await _scheduler(FakeJudge(), repository, polling_config, sleep).run(submission_id, "tok-1", cases)

    assert written is True
    assert len(write_threads) == 1
    assert write_threads[0] != threading.get_ident()
