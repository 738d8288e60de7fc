# src/task_storage/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..errors import DatabaseConnectionError, NotFoundError, QueryError, StorageError
from .task_models import Task

logger = logging.getLogger(__name__)

_TASK_COLUMNS = "id, opened, closed, author_id, assigned_id, title, content"

# Current time as integer epoch seconds, evaluated by the database.
_NOW_EPOCH: dict[str, str] = {
    "postgresql": "CAST(extract(epoch from now()) AS BIGINT)",
    "sqlite": "CAST(strftime('%s','now') AS INTEGER)",
}

_SCHEMA: dict[str, tuple[str, ...]] = {
    "postgresql": (
        f"""
        CREATE TABLE IF NOT EXISTS tasks (
            id SERIAL PRIMARY KEY,
            opened BIGINT NOT NULL DEFAULT {_NOW_EPOCH["postgresql"]},
            closed BIGINT DEFAULT 0,
            author_id INTEGER DEFAULT 0,
            assigned_id INTEGER DEFAULT 0,
            title TEXT,
            content TEXT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS tasks_labels (
            task_id INTEGER REFERENCES tasks(id),
            label_id INTEGER
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_tasks_author ON tasks(author_id)",
        "CREATE INDEX IF NOT EXISTS idx_tasks_labels_label ON tasks_labels(label_id)",
    ),
    "sqlite": (
        f"""
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            opened INTEGER NOT NULL DEFAULT ({_NOW_EPOCH["sqlite"]}),
            closed INTEGER DEFAULT 0,
            author_id INTEGER DEFAULT 0,
            assigned_id INTEGER DEFAULT 0,
            title TEXT,
            content TEXT
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS tasks_labels (
            task_id INTEGER REFERENCES tasks(id),
            label_id INTEGER
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_tasks_author ON tasks(author_id)",
        "CREATE INDEX IF NOT EXISTS idx_tasks_labels_label ON tasks_labels(label_id)",
    ),
}

SUPPORTED_DIALECTS = frozenset(_NOW_EPOCH)


def _configure_sqlite_conn(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


class TaskStore:
    """
    Relational task store (PostgreSQL in production, SQLite for local runs).

    Every public method is one transaction on a connection checked out from
    the engine pool, so a single TaskStore may be shared between threads.

    Errors:
    - TaskStore.open() raises DatabaseConnectionError
    - every operation wraps driver failures into QueryError
    - update/close/delete raise NotFoundError when no row matches
    """

    def __init__(self, engine: Engine, *, statement_timeout_ms: int = 0) -> None:
        dialect = engine.dialect.name
        if dialect not in SUPPORTED_DIALECTS:
            raise DatabaseConnectionError(f"unsupported database dialect: {dialect}")
        self._engine: Engine | None = engine
        self._dialect = dialect
        self._statement_timeout_ms = max(0, int(statement_timeout_ms))

    @classmethod
    def open(
        cls,
        database_url: str | URL,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: float = 30.0,
        pool_recycle: int = 1800,
        pool_pre_ping: bool = True,
        statement_timeout_ms: int = 0,
        echo: bool = False,
    ) -> TaskStore:
        """
        Create the pooled engine and verify it with one round trip.

        No retries: any failure is raised immediately as DatabaseConnectionError.
        Pool options are ignored for SQLite. An in-memory SQLite database is
        held on one shared connection so every thread sees the same tables.
        """
        try:
            url = make_url(database_url)
        except (SQLAlchemyError, ValueError) as exc:
            raise DatabaseConnectionError(f"invalid database url: {exc}", cause=exc) from exc

        dialect = url.get_backend_name()
        if dialect not in SUPPORTED_DIALECTS:
            raise DatabaseConnectionError(f"unsupported database dialect: {dialect}")

        masked = url.render_as_string(hide_password=True)
        engine_kwargs: dict[str, Any] = {"echo": echo}
        if dialect == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30.0}
            if not url.database or url.database == ":memory:":
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=pool_pre_ping,
            )

        try:
            engine = create_engine(url, **engine_kwargs)
        except (SQLAlchemyError, ImportError) as exc:
            logger.error("TaskStore engine setup failed db=%s: %s", masked, exc)
            raise DatabaseConnectionError(
                f"cannot create engine for {masked}: {exc}", cause=exc
            ) from exc

        if dialect == "sqlite":
            event.listen(engine, "connect", _configure_sqlite_conn)

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            engine.dispose()
            logger.error("TaskStore connection failed db=%s: %s", masked, exc)
            raise DatabaseConnectionError(f"cannot connect to {masked}: {exc}", cause=exc) from exc

        logger.info("TaskStore ready db=%s dialect=%s", masked, dialect)
        return cls(engine, statement_timeout_ms=statement_timeout_ms)

    def close(self) -> None:
        """Release the connection pool. Safe to call twice."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        logger.info("TaskStore closed")

    def __enter__(self) -> TaskStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def engine(self) -> Engine:
        return self._require_engine()

    @property
    def dialect(self) -> str:
        return self._dialect

    @property
    def closed(self) -> bool:
        return self._engine is None

    # ---- low-level helpers ----

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise StorageError("task store is closed")
        return self._engine

    @contextlib.contextmanager
    def _begin(self, operation: str, timeout: float | None) -> Iterator[Connection]:
        """
        One transaction: commit on success, rollback on any exception.

        SQLAlchemy errors come out as QueryError; NotFoundError raised by the
        caller inside the block rolls back and propagates unchanged.
        """
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                self._apply_timeout(conn, timeout)
                yield conn
        except SQLAlchemyError as exc:
            logger.exception("TaskStore %s failed", operation)
            raise QueryError(f"{operation} failed: {exc}", operation=operation, cause=exc) from exc

    def _apply_timeout(self, conn: Connection, timeout: float | None) -> None:
        ms = self._statement_timeout_ms if timeout is None else int(timeout * 1000)
        if ms <= 0 or self._dialect != "postgresql":
            return
        # set_config(..., true) is scoped to the current transaction.
        conn.execute(
            text("SELECT set_config('statement_timeout', :ms, true)"),
            {"ms": str(ms)},
        )

    @staticmethod
    def _row_to_task(row: Mapping[str, Any]) -> Task:
        return Task(
            id=int(row["id"]),
            opened=int(row["opened"] or 0),
            closed=int(row["closed"] or 0),
            author_id=int(row["author_id"] or 0),
            assigned_id=int(row["assigned_id"] or 0),
            title=str(row["title"] or ""),
            content=str(row["content"] or ""),
        )

    def _query_tasks(
        self,
        operation: str,
        where: list[str],
        params: dict[str, Any],
        *,
        timeout: float | None,
    ) -> list[Task]:
        sql = f"SELECT {_TASK_COLUMNS} FROM tasks"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY id"

        with self._begin(operation, timeout) as conn:
            rows = conn.execute(text(sql), params).mappings().all()
        return [self._row_to_task(r) for r in rows]

    def _update_one(
        self,
        operation: str,
        task_id: int,
        assignment: str,
        params: dict[str, Any],
        *,
        timeout: float | None,
    ) -> None:
        with self._begin(operation, timeout) as conn:
            result = conn.execute(
                text(f"UPDATE tasks SET {assignment} WHERE id = :task_id"),
                {**params, "task_id": int(task_id)},
            )
            if result.rowcount == 0:
                raise NotFoundError(task_id, operation=operation)
        logger.debug("Task updated id=%s op=%s", task_id, operation)

    # ---- schema / health ----

    def ensure_schema(self) -> None:
        """Create `tasks` and `tasks_labels` if missing. Existing tables are left as they are."""
        with self._begin("ensure_schema", None) as conn:
            for stmt in _SCHEMA[self._dialect]:
                conn.execute(text(stmt))
        logger.info("TaskStore schema ready dialect=%s total=%s", self._dialect, self.count_tasks())

    def ping(self) -> bool:
        if self._engine is None:
            return False
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("TaskStore ping failed", exc_info=True)
            return False

    def count_tasks(self, *, timeout: float | None = None) -> int:
        with self._begin("count_tasks", timeout) as conn:
            n = conn.execute(text("SELECT COUNT(*) FROM tasks")).scalar_one()
        return int(n)

    # ---- public API ----

    def list_tasks(
        self,
        task_id: int | None = None,
        author_id: int | None = None,
        *,
        timeout: float | None = None,
    ) -> list[Task]:
        """
        Tasks matching every given filter, ordered by id.

        None or 0 means "any"; ids start at 1, so 0 never names a real row.
        """
        where: list[str] = []
        params: dict[str, Any] = {}

        if task_id:
            where.append("id = :task_id")
            params["task_id"] = int(task_id)

        if author_id:
            where.append("author_id = :author_id")
            params["author_id"] = int(author_id)

        return self._query_tasks("list_tasks", where, params, timeout=timeout)

    def create_task(
        self,
        title: str,
        content: str,
        *,
        author_id: int | None = None,
        assigned_id: int | None = None,
        timeout: float | None = None,
    ) -> int:
        """Insert a task and return its id. opened/closed come from column defaults."""
        columns = ["title", "content"]
        params: dict[str, Any] = {"title": title, "content": content}

        if author_id is not None:
            columns.append("author_id")
            params["author_id"] = int(author_id)

        if assigned_id is not None:
            columns.append("assigned_id")
            params["assigned_id"] = int(assigned_id)

        placeholders = ", ".join(f":{c}" for c in columns)
        sql = f"INSERT INTO tasks ({', '.join(columns)}) VALUES ({placeholders})"

        with self._begin("create_task", timeout) as conn:
            if self._dialect == "postgresql":
                new_id = conn.execute(text(sql + " RETURNING id"), params).scalar_one()
            else:
                new_id = conn.execute(text(sql), params).lastrowid

        if new_id is None:
            raise QueryError("database did not return an id for the new task", operation="create_task")

        task_id = int(new_id)
        logger.debug("Task added id=%s author_id=%s assigned_id=%s", task_id, author_id, assigned_id)
        return task_id

    def find_tasks_by_author(
        self, author_id: int | None = None, *, timeout: float | None = None
    ) -> list[Task]:
        """Tasks by author ordered by id; None or 0 returns every task."""
        return self.list_tasks(author_id=author_id, timeout=timeout)

    def find_tasks_by_label(self, label_id: int, *, timeout: float | None = None) -> list[Task]:
        return self._query_tasks(
            "find_tasks_by_label",
            ["id IN (SELECT task_id FROM tasks_labels WHERE label_id = :label_id)"],
            {"label_id": int(label_id)},
            timeout=timeout,
        )

    def update_task_title(self, task_id: int, title: str, *, timeout: float | None = None) -> None:
        self._update_one("update_task_title", task_id, "title = :title", {"title": title}, timeout=timeout)

    def update_task_content(
        self, task_id: int, content: str, *, timeout: float | None = None
    ) -> None:
        self._update_one(
            "update_task_content", task_id, "content = :content", {"content": content}, timeout=timeout
        )

    def close_task(self, task_id: int, *, timeout: float | None = None) -> None:
        """
        Stamp `closed` with the database's current epoch second.

        Closing happens once: calling it again keeps the first timestamp.
        """
        params = {"task_id": int(task_id)}
        with self._begin("close_task", timeout) as conn:
            result = conn.execute(
                text(
                    f"UPDATE tasks SET closed = {_NOW_EPOCH[self._dialect]} "
                    "WHERE id = :task_id AND (closed IS NULL OR closed = 0)"
                ),
                params,
            )
            if result.rowcount == 0:
                exists = conn.execute(text("SELECT 1 FROM tasks WHERE id = :task_id"), params).first()
                if exists is None:
                    raise NotFoundError(task_id, operation="close_task")
                logger.debug("Task already closed id=%s", task_id)
                return
        logger.debug("Task closed id=%s", task_id)

    def delete_task(self, task_id: int, *, timeout: float | None = None) -> None:
        """Delete the task and its label links in one transaction."""
        params = {"task_id": int(task_id)}
        with self._begin("delete_task", timeout) as conn:
            links = conn.execute(
                text("DELETE FROM tasks_labels WHERE task_id = :task_id"), params
            ).rowcount
            result = conn.execute(text("DELETE FROM tasks WHERE id = :task_id"), params)
            if result.rowcount == 0:
                raise NotFoundError(task_id, operation="delete_task")
        logger.debug("Task deleted id=%s label_links=%s", task_id, links)
