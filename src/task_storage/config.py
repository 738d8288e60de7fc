# src/task_storage/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process.
- No database connection at import time.
- DATABASE_URL is honoured when the prefixed variable is not set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKS"

DEFAULT_DATABASE_URL = "sqlite:///.local/tasks/tasks.sqlite3"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Real environment variables win over a local .env file.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


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
    # ---- Logging ----
    log_level: str
    log_dir: Path

    # ---- Database ----
    database_url: str
    echo_sql: bool
    create_schema: bool
    statement_timeout_ms: int

    # ---- Pool (ignored for SQLite) ----
    pool_size: int
    max_overflow: int
    pool_timeout: float
    pool_recycle: int
    pool_pre_ping: bool

    @staticmethod
    def from_env() -> "Settings":
        log_level = _env(_k("LOG_LEVEL"), "INFO").strip().upper() or "INFO"
        log_dir = _env_path(_k("LOG_DIR"), Path(".local/tasks"))

        database_url = (
            _first_env(_k("DATABASE_URL"), "DATABASE_URL", default=DEFAULT_DATABASE_URL)
            or DEFAULT_DATABASE_URL
        ).strip()

        return Settings(
            log_level=log_level,
            log_dir=log_dir,
            database_url=database_url,
            echo_sql=_env_bool(_k("ECHO_SQL"), False),
            create_schema=_env_bool(_k("CREATE_SCHEMA"), False),
            statement_timeout_ms=max(0, _env_int(_k("STATEMENT_TIMEOUT_MS"), 0)),
            pool_size=max(1, _env_int(_k("POOL_SIZE"), 5)),
            max_overflow=max(0, _env_int(_k("MAX_OVERFLOW"), 10)),
            pool_timeout=_env_float(_k("POOL_TIMEOUT"), 30.0),
            pool_recycle=_env_int(_k("POOL_RECYCLE"), 1800),
            pool_pre_ping=_env_bool(_k("POOL_PRE_PING"), True),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
