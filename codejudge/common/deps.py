"""Shared FastAPI dependencies: bearer-token identity and the service graph."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from codejudge.core.config import get_settings
from codejudge.db.session import get_session_factory
from codejudge.features.judge.client import JudgeClient, build_judge_client
from codejudge.features.languages.registry import LanguageRegistry
from codejudge.features.leaderboard.service import LeaderboardService
from codejudge.features.problems.repository import ProblemCatalog
from codejudge.features.submissions.interpreter import ResultInterpreter
from codejudge.features.submissions.polling import PollingScheduler
from codejudge.features.submissions.repository import SubmissionRepository
from codejudge.features.submissions.service import SubmissionService
from codejudge.jobs.runner import BackgroundJobRunner

logger = logging.getLogger("auth.deps")
security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Opaque authenticated identity; ``id`` is the token subject."""
    id: str


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    if not settings.auth_jwt_secret:
        raise JWTError("AUTH_JWT_SECRET is not configured")
    options = {"verify_aud": settings.auth_jwt_audience is not None}
    return jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=[settings.auth_jwt_algorithm],
        audience=settings.auth_jwt_audience,
        options=options,
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        claims = decode_token(credentials.credentials)
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials") from exc

    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token missing sub")

    current = CurrentUser(id=str(user_id))
    logger.debug(
        "auth_resolved user_id=%s request_id=%s path=%s",
        current.id,
        getattr(request.state, "request_id", None),
        request.url.path,
    )
    return current


# -------- service graph (one instance per process) --------

@lru_cache()
def get_language_registry() -> LanguageRegistry:
    return LanguageRegistry.from_config(get_settings().judge_config())


@lru_cache()
def get_judge_client() -> JudgeClient:
    return build_judge_client(get_settings().judge_config())


@lru_cache()
def get_problem_catalog() -> ProblemCatalog:
    return ProblemCatalog(get_session_factory())


@lru_cache()
def get_submission_repository() -> SubmissionRepository:
    return SubmissionRepository(get_session_factory())


@lru_cache()
def get_job_runner() -> BackgroundJobRunner:
    return BackgroundJobRunner(get_settings().job_max_concurrency)


@lru_cache()
def get_polling_scheduler() -> PollingScheduler:
    settings = get_settings()
    return PollingScheduler(
        get_judge_client(),
        get_submission_repository(),
        ResultInterpreter(settings.judge_output_delimiter),
        settings.polling_config(),
    )


@lru_cache()
def get_submission_service() -> SubmissionService:
    settings = get_settings()
    return SubmissionService(
        get_submission_repository(),
        get_problem_catalog(),
        get_language_registry(),
        get_judge_client(),
        get_polling_scheduler(),
        get_job_runner(),
        delimiter=settings.judge_output_delimiter,
        history_max_limit=settings.history_max_limit,
    )


@lru_cache()
def get_leaderboard_service() -> LeaderboardService:
    return LeaderboardService(get_submission_repository(), default_limit=get_settings().leaderboard_limit)
