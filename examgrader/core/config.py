from __future__ import annotations

import os
from functools import lru_cache
from dotenv import load_dotenv, find_dotenv

_env_path = find_dotenv(".env") or ".env"
load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


class Settings:
    """Central configuration (env driven)."""

    def __init__(self) -> None:
        # Database
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite:///./examgrader.db")
        # Judge0 / external
        self.judge0_api_url: str = os.getenv("JUDGE0_BASE_URL", "")
        self.judge0_api_key: str = os.getenv("JUDGE0_KEY", "")
        self.judge0_host: str = os.getenv("JUDGE0_HOST", "")
        self.judge0_timeout_s: float = _env_float("JUDGE0_TIMEOUT_S", 15.0)
        # Poll loop is bounded to 30-40 attempts
        self.judge0_poll_attempts: int = min(40, max(30, _env_int("JUDGE0_POLL_ATTEMPTS", 30)))
        self.judge0_poll_interval_s: float = max(0.0, _env_float("JUDGE0_POLL_INTERVAL_S", 0.5))
        # Grading
        self.complexity_warmup: bool = _env_bool("COMPLEXITY_WARMUP", "true")
        self.max_source_bytes: int = _env_int("MAX_SOURCE_BYTES", 64 * 1024)
        self.stats_cas_retries: int = max(1, _env_int("STATS_CAS_RETRIES", 5))
        # App meta
        self.app_name: str = "Exam Grader"
        self.debug: bool = _env_bool("DEBUG", "false")
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def get_database_url(self) -> str:
        return self.database_url


@lru_cache()
def get_settings() -> Settings:
    return Settings()
