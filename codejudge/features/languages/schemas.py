from pydantic import BaseModel
from typing import List


class LanguageInfo(BaseModel):
    language: str
    runtime_id: int
    display_name: str


class SupportedLanguagesResponse(BaseModel):
    """List of supported programming languages"""
    languages: List[LanguageInfo]
    total_count: int
