"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


@dataclass(frozen=True)
class CourseSeed:
    course_id: str
    name: str
    minutes: int


@dataclass(frozen=True)
class Settings:
    app_name: str = "Walk-in Queue Estimator"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = PROJECT_ROOT / "data" / "queue.db"
    admin_token: str | None = None
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    default_max_capacity: int = 20
    turnover_buffer_minutes: int = 7
    default_course_minutes: int = 30
    default_courses: tuple[CourseSeed, ...] = (
        CourseSeed(course_id="c30", name="30 minute course", minutes=30),
        CourseSeed(course_id="c60", name="60 minute course", minutes=60),
    )

    party_id_prefix: str = "q_"
    occupant_id_prefix: str = "in_"
    history_id_prefix: str = "h_"
    preview_party_id: str = "__preview__"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive variants with `replace`."""
    defaults = Settings()
    database_path = os.getenv("DATABASE_PATH")
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        database_path=Path(database_path) if database_path else defaults.database_path,
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        api_host=os.getenv("API_HOST", defaults.api_host),
        api_port=_env_int("API_PORT", defaults.api_port),
        default_max_capacity=_env_int("DEFAULT_MAX_CAPACITY", defaults.default_max_capacity),
        turnover_buffer_minutes=_env_int(
            "TURNOVER_BUFFER_MINUTES",
            defaults.turnover_buffer_minutes,
        ),
        default_course_minutes=_env_int(
            "DEFAULT_COURSE_MINUTES",
            defaults.default_course_minutes,
        ),
    )
