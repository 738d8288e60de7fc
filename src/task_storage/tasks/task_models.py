# src/task_storage/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Task:
    """
    One row of the `tasks` table.

    Notes:
    - id and opened are assigned by the database on insert.
    - closed is 0 until the task is closed, then holds epoch seconds.
    - author_id / assigned_id are 0 when unset (users live elsewhere).
    """

    id: int
    opened: int
    closed: int

    author_id: int
    assigned_id: int

    title: str
    content: str

    @property
    def is_closed(self) -> bool:
        return self.closed != 0
