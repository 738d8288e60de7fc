# src/task_storage/bootstrap.py

"""
Composition root for the calling service:
- loads settings once,
- optionally configures logging,
- ensures the local directory of a SQLite database exists,
- opens the TaskStore (and creates the tables when asked to).

The returned store owns the connection pool: close it at shutdown,
or use it as a context manager.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .config import Settings, get_settings
from .logging_setup import setup_logging
from .tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    try:
        url = make_url(settings.database_url)
    except ArgumentError:
        # TaskStore.open reports malformed URLs.
        return
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_task_store(*, settings: Settings | None = None, configure_logging: bool = False) -> TaskStore:
    """
    Open a TaskStore from the provided settings.

    Keeping settings injectable makes this easy to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if configure_logging:
        setup_logging(
            log_dir=settings.log_dir,
            console_level=settings.log_level,
            sql_echo=settings.echo_sql,
        )

    _ensure_local_dirs(settings)

    store = TaskStore.open(
        settings.database_url,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
        pool_pre_ping=settings.pool_pre_ping,
        statement_timeout_ms=settings.statement_timeout_ms,
        # With our handlers installed, SQL echo goes through them instead.
        echo=settings.echo_sql and not configure_logging,
    )

    if settings.create_schema:
        try:
            store.ensure_schema()
        except Exception:
            store.close()
            raise

    return store
