from fastapi import APIRouter, Depends

from codejudge.common.deps import get_language_registry

from .registry import LanguageRegistry
from .schemas import SupportedLanguagesResponse

router = APIRouter(prefix="/languages", tags=["languages"])


@router.get("", response_model=SupportedLanguagesResponse)
async def get_supported_languages(registry: LanguageRegistry = Depends(get_language_registry)):
    """Get list of supported programming languages"""
    languages = registry.languages()
    return SupportedLanguagesResponse(languages=languages, total_count=len(languages))
