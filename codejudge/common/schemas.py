from __future__ import annotations
from pydantic import BaseModel
from typing import Optional, Dict, Any


class ErrorResponse(BaseModel):
    """Standard error payload carried in ``HTTPException.detail``"""
    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def error_detail(error_code: str, message: str, **details: Any) -> Dict[str, Any]:
    return ErrorResponse(error_code=error_code, message=message, details=details or None).model_dump(exclude_none=True)
