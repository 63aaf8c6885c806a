# src/taskflow/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKFLOW"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Remote store ----
    api_base_url: str  # empty -> local SQLite store
    http_timeout_seconds: float

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Board defaults ----
    user_name: str
    default_assignee: str

    @property
    def use_http(self) -> bool:
        return bool(self.api_base_url)

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskflow").strip() or "taskflow"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        api_base_url = _env(_k("API_BASE_URL"), "").strip()
        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 30.0))

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskflow"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "board.sqlite3")

        user_name = _env(_k("USER_NAME"), "You").strip() or "You"
        default_assignee = _env(_k("DEFAULT_ASSIGNEE"), "You").strip()

        return Settings(
            app_name=app_name,
            log_level=log_level,
            api_base_url=api_base_url,
            http_timeout_seconds=http_timeout_seconds,
            data_dir=data_dir,
            db_path=db_path,
            user_name=user_name,
            default_assignee=default_assignee,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(override=False)
    return Settings.from_env()
