from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool

from codejudge.common.deps import get_leaderboard_service

from .schemas import LeaderboardResponse
from .service import LeaderboardService

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("/{problem_id}", response_model=LeaderboardResponse)
async def get_leaderboard(
    problem_id: str,
    limit: Optional[int] = Query(None, ge=1),
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    """Best accepted submission per user for a problem, ranked."""
    return await run_in_threadpool(service.leaderboard, problem_id, limit)
