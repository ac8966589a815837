from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class LeaderboardEntry(BaseModel):
	rank: int
	user_id: str
	submission_id: str
	language: str
	score: int
	execution_time: Optional[float] = None
	memory_used: Optional[int] = None
	submitted_at: Optional[datetime] = None
	performance_rating: str = "N/A"


class LeaderboardResponse(BaseModel):
	problem_id: str
	entries: List[LeaderboardEntry] = Field(default_factory=list)
	total_count: int = 0
