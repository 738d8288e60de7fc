# src/task_storage/errors.py

from __future__ import annotations


class StorageError(Exception):
    """Base class for every error raised by the task store."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class DatabaseConnectionError(StorageError, ConnectionError):
    """
    The store could not be opened.

    Raised once, by TaskStore.open(): malformed URL, missing driver,
    unreachable host, bad credentials or an unsupported dialect.
    """


class QueryError(StorageError):
    """The database rejected or failed to execute a statement."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.operation = operation


class NotFoundError(QueryError):
    """An update/close/delete matched no task row."""

    def __init__(self, task_id: int, *, operation: str | None = None) -> None:
        super().__init__(f"task {task_id} not found", operation=operation)
        self.task_id = task_id
