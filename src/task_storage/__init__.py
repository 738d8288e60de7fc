"""
Relational task storage.

Components:
- tasks/task_models.py: Task record
- tasks/task_store.py: SQLAlchemy-backed repository (PostgreSQL / SQLite)
- core/ports.py: TaskRepo protocol for the calling service
- bootstrap.py: settings -> logging -> opened store
"""

from .bootstrap import create_task_store
from .core.ports import TaskRepo
from .errors import DatabaseConnectionError, NotFoundError, QueryError, StorageError
from .tasks.task_models import Task
from .tasks.task_store import TaskStore

__all__ = [
    "DatabaseConnectionError",
    "NotFoundError",
    "QueryError",
    "StorageError",
    "Task",
    "TaskRepo",
    "TaskStore",
    "create_task_store",
]
