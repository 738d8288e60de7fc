# tests/conftest.py

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import text

from task_storage.tasks.task_store import TaskStore


@pytest.fixture()
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'tasks.sqlite3'}"


_PG_URL = os.getenv("TASKS_TEST_DATABASE_URL", "").strip()


def _reset_pg_schema(s: TaskStore) -> None:
    with s.engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS tasks_labels, tasks CASCADE"))


@pytest.fixture(
    params=[
        "sqlite",
        pytest.param(
            "postgresql",
            marks=pytest.mark.skipif(not _PG_URL, reason="TASKS_TEST_DATABASE_URL not set"),
        ),
    ]
)
def store(request: pytest.FixtureRequest, db_url: str) -> Iterator[TaskStore]:
    """
    Real TaskStore with a fresh schema in place.

    SQLite always runs; PostgreSQL runs when TASKS_TEST_DATABASE_URL points at
    a scratch database (its tasks tables are dropped and recreated per test).

    NOTE: We keep a real database here because the SQL itself is what we test.
    """
    if request.param == "postgresql":
        s = TaskStore.open(_PG_URL)
        _reset_pg_schema(s)
    else:
        s = TaskStore.open(db_url)
    s.ensure_schema()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def link_label(store: TaskStore) -> Callable[[int, int], None]:
    """Insert a tasks_labels row; labels are owned by another component."""

    def _link(task_id: int, label_id: int) -> None:
        with store.engine.begin() as conn:
            conn.execute(
                text("INSERT INTO tasks_labels (task_id, label_id) VALUES (:t, :l)"),
                {"t": task_id, "l": label_id},
            )

    return _link


@pytest.fixture()
def label_rows(store: TaskStore) -> Callable[[int], int]:
    def _count(task_id: int) -> int:
        with store.engine.connect() as conn:
            return int(
                conn.execute(
                    text("SELECT COUNT(*) FROM tasks_labels WHERE task_id = :t"), {"t": task_id}
                ).scalar_one()
            )

    return _count


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap.create_task_store.

    We intentionally use a SimpleNamespace rather than the real Settings,
    to keep tests isolated from the process environment.
    """
    return SimpleNamespace(
        log_level="INFO",
        log_dir=tmp_path / "logs",
        database_url=f"sqlite:///{tmp_path / 'data' / 'tasks.sqlite3'}",
        echo_sql=False,
        create_schema=True,
        statement_timeout_ms=0,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30.0,
        pool_recycle=1800,
        pool_pre_ping=True,
    )
