from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from codejudge.common.errors import SubmissionNotFoundError

from .models import NON_TERMINAL_STATUSES, Submission, SubmissionStatus

logger = logging.getLogger(__name__)

_NON_TERMINAL = [s.value for s in NON_TERMINAL_STATUSES]

# Columns a terminal update may touch; everything else is immutable after creation.
TERMINAL_FIELDS = frozenset(
    {
        "status",
        "terminal_reason",
        "passed_test_cases",
        "score",
        "execution_time_ms",
        "memory_used_kb",
        "test_case_results",
        "compilation_error",
        "runtime_error",
        "judge_message",
        "completed_at",
    }
)


class SubmissionRepository:
    """SQLAlchemy-backed submission record store.

    Every mutation is a single-row ``UPDATE`` guarded by the current status, so concurrent
    writers cannot move a record backwards or overwrite a terminal result.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create(
        self,
        *,
        user_id: str,
        problem_id: str,
        source_code: str,
        language: str,
        total_test_cases: int,
    ) -> Submission:
        with self._session_factory() as db:
            try:
                record = Submission(
                    user_id=user_id,
                    problem_id=problem_id,
                    source_code=source_code,
                    language=language,
                    status=SubmissionStatus.pending.value,
                    total_test_cases=total_test_cases,
                    test_case_results=[],
                    submitted_at=datetime.now(timezone.utc),
                )
                db.add(record)
                db.commit()
                db.refresh(record)
            except Exception:
                db.rollback()
                raise
        logger.info("submission.created id=%s user=%s problem=%s", record.id, user_id, problem_id)
        return record

    def get(self, submission_id: str) -> Submission:
        with self._session_factory() as db:
            record = db.get(Submission, submission_id)
        if record is None:
            raise SubmissionNotFoundError(submission_id)
        return record

    def mark_running(self, submission_id: str, judge_handle: str) -> bool:
        """pending -> running, recording the judge handle. Returns False if the record was not pending."""
        stmt = (
            update(Submission)
            .where(Submission.id == submission_id, Submission.status == SubmissionStatus.pending.value)
            .values(status=SubmissionStatus.running.value, judge_handle=judge_handle)
        )
        with self._session_factory() as db:
            result = db.execute(stmt)
            db.commit()
        changed = result.rowcount == 1
        if not changed:
            logger.warning("submission.mark_running skipped id=%s (not pending)", submission_id)
        return changed

    def finalize(self, submission_id: str, fields: Dict[str, Any]) -> bool:
        """Write the terminal fields together with the status in one conditional update.

        Returns False (and writes nothing) when the record is already terminal.
        """
        unknown = set(fields) - TERMINAL_FIELDS
        if unknown:
            raise ValueError(f"Not terminal submission fields: {sorted(unknown)}")
        status = SubmissionStatus(fields["status"])
        if not status.is_terminal:
            raise ValueError(f"finalize requires a terminal status, got {status.value}")
        values = dict(fields)
        values["status"] = status.value
        values.setdefault("completed_at", datetime.now(timezone.utc))
        stmt = (
            update(Submission)
            .where(Submission.id == submission_id, Submission.status.in_(_NON_TERMINAL))
            .values(**values)
        )
        with self._session_factory() as db:
            result = db.execute(stmt)
            db.commit()
        if result.rowcount == 0:
            logger.info("submission.finalize no-op id=%s (already terminal or missing)", submission_id)
            return False
        logger.info(
            "submission.finalized id=%s status=%s reason=%s",
            submission_id,
            status.value,
            values.get("terminal_reason"),
        )
        return True

    def list_by_user(
        self,
        user_id: str,
        *,
        problem_id: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Submission], int]:
        conditions = [Submission.user_id == user_id]
        if problem_id:
            conditions.append(Submission.problem_id == problem_id)
        with self._session_factory() as db:
            total = db.execute(select(func.count()).select_from(Submission).where(*conditions)).scalar_one()
            stmt = (
                select(Submission)
                .where(*conditions)
                .order_by(Submission.submitted_at.desc(), Submission.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            items = list(db.execute(stmt).scalars().all())
        return items, int(total)

    def list_accepted_by_problem(self, problem_id: str) -> List[Submission]:
        """Accepted submissions for a problem in leaderboard order."""
        stmt = (
            select(Submission)
            .where(Submission.problem_id == problem_id, Submission.status == SubmissionStatus.accepted.value)
            .order_by(
                Submission.score.desc(),
                Submission.execution_time_ms.asc(),
                Submission.memory_used_kb.asc(),
                Submission.submitted_at.asc(),
            )
        )
        with self._session_factory() as db:
            return list(db.execute(stmt).scalars().all())

    def list_inflight(self) -> List[Submission]:
        stmt = select(Submission).where(Submission.status.in_(_NON_TERMINAL)).order_by(Submission.submitted_at.asc())
        with self._session_factory() as db:
            return list(db.execute(stmt).scalars().all())
