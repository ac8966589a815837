from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from codejudge.common.errors import UnsupportedLanguageError
from codejudge.core.config import JudgeConfig

from .schemas import LanguageInfo

# Judge0 CE language ids
JUDGE0_RUNTIMES: Dict[str, int] = {
    "python": 71,
    "javascript": 63,
    "java": 62,
    "cpp": 54,
    "c": 50,
    "go": 60,
    "rust": 73,
    "swift": 83,
    "kotlin": 78,
}

# Sphere Engine compiler ids
SPHERE_RUNTIMES: Dict[str, int] = {
    "python": 116,
    "javascript": 112,
    "java": 10,
    "cpp": 41,
    "c": 11,
    "go": 114,
    "rust": 142,
    "swift": 83,
    "kotlin": 43,
}

DEFAULT_RUNTIMES: Dict[str, Dict[str, int]] = {
    "judge0": JUDGE0_RUNTIMES,
    "sphere": SPHERE_RUNTIMES,
}

LANGUAGE_ALIASES: Dict[str, str] = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "nodejs": "javascript",
    "c++": "cpp",
    "cplusplus": "cpp",
    "golang": "go",
    "kt": "kotlin",
    "rs": "rust",
}

DISPLAY_NAMES: Dict[str, str] = {
    "python": "Python 3",
    "javascript": "JavaScript (Node.js)",
    "java": "Java",
    "cpp": "C++",
    "c": "C",
    "go": "Go",
    "rust": "Rust",
    "swift": "Swift",
    "kotlin": "Kotlin",
}


def canonical_language(language: Optional[str]) -> str:
    key = (language or "").strip().lower()
    return LANGUAGE_ALIASES.get(key, key)


class LanguageRegistry:
    """Static language -> judge runtime id table. Pure lookups, no I/O."""

    def __init__(self, runtimes: Mapping[str, int]) -> None:
        self._runtimes: Dict[str, int] = {canonical_language(k): int(v) for k, v in runtimes.items()}

    @classmethod
    def from_config(cls, config: JudgeConfig) -> "LanguageRegistry":
        table = dict(DEFAULT_RUNTIMES.get(config.provider, JUDGE0_RUNTIMES))
        table.update(config.languages or {})
        return cls(table)

    def resolve(self, language: Optional[str]) -> int:
        key = canonical_language(language)
        runtime_id = self._runtimes.get(key)
        if runtime_id is None:
            raise UnsupportedLanguageError(language or "")
        return runtime_id

    def is_supported(self, language: Optional[str]) -> bool:
        return canonical_language(language) in self._runtimes

    def languages(self) -> List[LanguageInfo]:
        return [
            LanguageInfo(language=name, runtime_id=rid, display_name=DISPLAY_NAMES.get(name, name))
            for name, rid in sorted(self._runtimes.items())
        ]
