# src/task_storage/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) exposed to the calling service.

The service depends on this Protocol instead of TaskStore itself,
which keeps the storage swappable and makes in-memory fakes easy to write.
"""

from typing import Protocol, runtime_checkable

from ..tasks.task_models import Task


@runtime_checkable
class TaskRepo(Protocol):
    # Reads
    def list_tasks(
            self,
            task_id: int | None = None,
            author_id: int | None = None,
            *,
            timeout: float | None = None,
    ) -> list[Task]: ...
    def find_tasks_by_author(self, author_id: int | None = None, *, timeout: float | None = None) -> list[Task]: ...
    def find_tasks_by_label(self, label_id: int, *, timeout: float | None = None) -> list[Task]: ...

    # Writes
    def create_task(
            self,
            title: str,
            content: str,
            *,
            author_id: int | None = None,
            assigned_id: int | None = None,
            timeout: float | None = None,
    ) -> int: ...
    def update_task_title(self, task_id: int, title: str, *, timeout: float | None = None) -> None: ...
    def update_task_content(self, task_id: int, content: str, *, timeout: float | None = None) -> None: ...
    def close_task(self, task_id: int, *, timeout: float | None = None) -> None: ...
    def delete_task(self, task_id: int, *, timeout: float | None = None) -> None: ...

    # Lifecycle
    def close(self) -> None: ...
