from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional

from dotenv import load_dotenv, find_dotenv

_env_path = find_dotenv(".env") or ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _env_csv(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip().rstrip("/") for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class JudgeConfig:
    """Connection details for the external judge, handed to the client at construction."""

    provider: str = "judge0"
    base_url: str = ""
    api_key: str = ""
    host: str = ""
    timeout_s: float = 25.0
    connect_retries: int = 3
    output_delimiter: str = "\n"
    languages: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PollingConfig:
    initial_delay_s: float = 5.0
    interval_s: float = 10.0
    max_attempts: int = 30
    backoff_factor: float = 1.0
    max_interval_s: float = 60.0

    def delay_before_attempt(self, attempt: int) -> float:
        """Delay slept before poll ``attempt`` (1-based)."""
        if attempt <= 1:
            return self.initial_delay_s
        step = self.interval_s * (self.backoff_factor ** (attempt - 2))
        if self.backoff_factor > 1.0:
            step = min(step, self.max_interval_s)
        return step

    def worst_case_seconds(self) -> float:
        """Total sleep across all attempts, excluding time spent inside fetch calls."""
        return sum(self.delay_before_attempt(n) for n in range(1, self.max_attempts + 1))

    def deadline_seconds(self) -> float:
        """Wall-clock limit from dispatch to the terminal write, fetch time included.

        One extra step on top of the sleeps; with a fixed delay this is
        ``initial_delay + max_attempts * interval``.
        """
        return self.worst_case_seconds() + self.delay_before_attempt(self.max_attempts + 1)


class Settings:
    """Central configuration (env driven)."""

    def __init__(self) -> None:
        # Database
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite:///./codejudge.db")
        self.db_auto_create: bool = _env_bool("DB_AUTO_CREATE", "true")
        # Judge
        self.judge_provider: str = os.getenv("JUDGE_PROVIDER", "judge0").strip().lower()
        self.judge_base_url: str = os.getenv("JUDGE_BASE_URL", "").strip()
        self.judge_api_key: str = os.getenv("JUDGE_API_KEY", "")
        self.judge_host: str = os.getenv("JUDGE_HOST", "")
        self.judge_timeout_s: float = float(os.getenv("JUDGE_TIMEOUT_S", "25"))
        self.judge_connect_retries: int = int(os.getenv("JUDGE_CONNECT_RETRIES", "3"))
        self.judge_output_delimiter: str = (
            os.getenv("JUDGE_OUTPUT_DELIMITER", "\\n").encode().decode("unicode_escape") or "\n"
        )
        self.judge_languages: Dict[str, int] = self._parse_languages(os.getenv("JUDGE_LANGUAGES"))
        # Polling
        self.poll_initial_delay_s: float = float(os.getenv("POLL_INITIAL_DELAY_S", "5"))
        self.poll_interval_s: float = float(os.getenv("POLL_INTERVAL_S", "10"))
        self.poll_max_attempts: int = int(os.getenv("POLL_MAX_ATTEMPTS", "30"))
        self.poll_backoff_factor: float = float(os.getenv("POLL_BACKOFF_FACTOR", "1.0"))
        self.poll_max_interval_s: float = float(os.getenv("POLL_MAX_INTERVAL_S", "60"))
        self.job_max_concurrency: int = max(1, int(os.getenv("JOB_MAX_CONCURRENCY", "32")))
        # Reads
        self.leaderboard_limit: int = int(os.getenv("LEADERBOARD_LIMIT", "50"))
        self.history_max_limit: int = int(os.getenv("HISTORY_MAX_LIMIT", "100"))
        # Auth
        self.auth_jwt_secret: str = os.getenv("AUTH_JWT_SECRET", "")
        self.auth_jwt_algorithm: str = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
        self.auth_jwt_audience: Optional[str] = os.getenv("AUTH_JWT_AUDIENCE") or None
        # App meta
        self.app_name: str = "CodeJudge"
        self.debug: bool = _env_bool("DEBUG", "false")
        self.log_level: str = os.getenv("LOG_LEVEL", "DEBUG" if self.debug else "INFO").upper()
        self.allow_origins: list[str] = _env_csv(
            "ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"
        )

    @staticmethod
    def _parse_languages(raw: Optional[str]) -> Dict[str, int]:
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"JUDGE_LANGUAGES must be a JSON object: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("JUDGE_LANGUAGES must be a JSON object mapping language -> runtime id")
        return {str(k).strip().lower(): int(v) for k, v in data.items()}

    def judge_config(self) -> JudgeConfig:
        return JudgeConfig(
            provider=self.judge_provider,
            base_url=self.judge_base_url,
            api_key=self.judge_api_key,
            host=self.judge_host,
            timeout_s=self.judge_timeout_s,
            connect_retries=max(1, self.judge_connect_retries),
            output_delimiter=self.judge_output_delimiter,
            languages=dict(self.judge_languages),
        )

    def polling_config(self) -> PollingConfig:
        return PollingConfig(
            initial_delay_s=self.poll_initial_delay_s,
            interval_s=self.poll_interval_s,
            max_attempts=max(1, self.poll_max_attempts),
            backoff_factor=max(1.0, self.poll_backoff_factor),
            max_interval_s=self.poll_max_interval_s,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
