from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from codejudge.features.submissions.models import Submission
from codejudge.features.submissions.repository import SubmissionRepository
from codejudge.features.submissions.schemas import performance_rating

from .schemas import LeaderboardEntry, LeaderboardResponse

logger = logging.getLogger("leaderboard")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return _EPOCH
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def ranking_key(record: Submission):
    """score desc, execution time asc, memory asc, earliest first; missing metrics sort last."""
    return (
        -(record.score or 0),
        record.execution_time_ms if record.execution_time_ms is not None else math.inf,
        record.memory_used_kb if record.memory_used_kb is not None else math.inf,
        _aware(record.submitted_at),
    )


def best_per_user(records: Sequence[Submission], limit: int) -> List[Submission]:
    ordered = sorted(records, key=ranking_key)
    seen: set[str] = set()
    best: List[Submission] = []
    for record in ordered:
        if record.user_id in seen:
            continue
        seen.add(record.user_id)
        best.append(record)
        if len(best) >= limit:
            break
    return best


class LeaderboardService:
    def __init__(self, repository: SubmissionRepository, *, default_limit: int = 50) -> None:
        self.repository = repository
        self.default_limit = default_limit

    def leaderboard(self, problem_id: str, limit: Optional[int] = None) -> LeaderboardResponse:
        limit = max(1, min(limit or self.default_limit, self.default_limit))
        accepted = self.repository.list_accepted_by_problem(problem_id)
        best = best_per_user(accepted, limit)
        entries = [
            LeaderboardEntry(
                rank=index,
                user_id=record.user_id,
                submission_id=record.id,
                language=record.language,
                score=record.score or 0,
                execution_time=record.execution_time_ms,
                memory_used=record.memory_used_kb,
                submitted_at=record.submitted_at,
                performance_rating=performance_rating(record.status, record.execution_time_ms),
            )
            for index, record in enumerate(best, start=1)
        ]
        logger.debug("leaderboard problem=%s accepted=%d entries=%d", problem_id, len(accepted), len(entries))
        return LeaderboardResponse(problem_id=problem_id, entries=entries, total_count=len(entries))
