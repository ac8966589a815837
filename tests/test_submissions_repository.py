import pytest

from codejudge.common.errors import SubmissionNotFoundError
from codejudge.features.submissions.models import SubmissionStatus


def _create(repository, user_id="user-1", problem_id="p-1", total=2):
    return repository.create(
        user_id=user_id,
        problem_id=problem_id,
        source_code="print(1)",
        language="python",
        total_test_cases=total,
    )


def test_create_starts_pending_without_scoring_fields(repository):
    record = _create(repository)
    fetched = repository.get(record.id)

    assert fetched.status == "pending"
    assert fetched.judge_handle is None
    assert fetched.score is None and fetched.passed_test_cases is None
    assert fetched.test_case_results == []
    assert fetched.submitted_at is not None and fetched.completed_at is None


def test_get_unknown_raises(repository):
    with pytest.raises(SubmissionNotFoundError):
        repository.get("missing")


def test_mark_running_only_from_pending(repository):
    record = _create(repository)

    assert repository.mark_running(record.id, "tok-1") is True
    assert repository.mark_running(record.id, "tok-2") is False
    assert repository.get(record.id).judge_handle == "tok-1"


def test_finalize_is_one_shot(repository):
    record = _create(repository)
    repository.mark_running(record.id, "tok-1")

    assert repository.finalize(record.id, {"status": "accepted", "score": 100, "passed_test_cases": 2}) is True
    assert repository.finalize(record.id, {"status": "runtime_error", "runtime_error": "late"}) is False

    fetched = repository.get(record.id)
    assert fetched.status == "accepted"
    assert fetched.runtime_error is None
    assert fetched.completed_at is not None


def test_terminal_record_cannot_return_to_running(repository):
    record = _create(repository)
    repository.finalize(record.id, {"status": "infrastructure_error", "terminal_reason": "dispatch_failed"})

    assert repository.mark_running(record.id, "tok-1") is False
    assert repository.get(record.id).status == "infrastructure_error"


def test_finalize_rejects_non_terminal_status_and_immutable_fields(repository):
    record = _create(repository)
    with pytest.raises(ValueError):
        repository.finalize(record.id, {"status": SubmissionStatus.running})
    with pytest.raises(ValueError):
        repository.finalize(record.id, {"status": "accepted", "source_code": "hacked"})


def test_list_by_user_filters_and_paginates(repository):
    for _ in range(3):
        _create(repository, problem_id="p-1")
    _create(repository, problem_id="p-2")
    _create(repository, user_id="someone-else")

    items, total = repository.list_by_user("user-1", page=1, limit=2)
    assert total == 4 and len(items) == 2

    items, total = repository.list_by_user("user-1", problem_id="p-1", page=2, limit=2)
    assert total == 3 and len(items) == 1


def test_list_inflight_excludes_terminal(repository):
    done = _create(repository)
    repository.finalize(done.id, {"status": "wrong_answer", "score": 0})
    waiting = _create(repository)

    assert [r.id for r in repository.list_inflight()] == [waiting.id]
