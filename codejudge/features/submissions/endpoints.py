from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool

from codejudge.common.deps import CurrentUser, get_current_user, get_submission_service
from codejudge.common.errors import (
    JudgingCapacityError,
    MissingFieldError,
    NotCodingProblemError,
    ProblemMissingTestCasesError,
    ProblemNotFoundError,
    SubmissionDispatchFailed,
    SubmissionNotFoundError,
    UnsupportedLanguageError,
)
from codejudge.common.schemas import error_detail

from .schemas import SubmissionHistoryResponse, SubmissionResponse, SubmitRequest, SubmitResponse
from .service import SubmissionService

logger = logging.getLogger("submissions.endpoints")

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post("", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_code(
    payload: SubmitRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: SubmissionService = Depends(get_submission_service),
):
    """Create a submission and send it to the judge; poll GET /submissions/{id} for the result."""
    try:
        return await service.submit(current_user.id, payload.problem_id, payload.source_code, payload.language)
    except (MissingFieldError, UnsupportedLanguageError, ProblemMissingTestCasesError) as exc:
        raise HTTPException(status_code=400, detail=error_detail(exc.code, exc.message)) from exc
    except (ProblemNotFoundError, NotCodingProblemError) as exc:
        raise HTTPException(status_code=404, detail=error_detail(exc.code, exc.message)) from exc
    except JudgingCapacityError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_detail(exc.code, exc.message),
            headers={"Retry-After": "5"},
        ) from exc
    except SubmissionDispatchFailed as exc:
        logger.error("submit dispatch failed user=%s submission=%s", current_user.id, exc.submission_id)
        raise HTTPException(
            status_code=500,
            detail=error_detail(exc.code, exc.message, submission_id=exc.submission_id),
        ) from exc


@router.get("/history", response_model=SubmissionHistoryResponse)
async def get_submission_history(
    problem_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    current_user: CurrentUser = Depends(get_current_user),
    service: SubmissionService = Depends(get_submission_service),
):
    return await run_in_threadpool(
        service.history, current_user.id, problem_id=problem_id, page=page, limit=limit
    )


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission_status(
    submission_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SubmissionService = Depends(get_submission_service),
):
    try:
        return await run_in_threadpool(service.get_status, submission_id, current_user.id)
    except SubmissionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=error_detail(exc.code, exc.message)) from exc
