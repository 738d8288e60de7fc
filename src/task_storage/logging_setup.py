# src/task_storage/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

# Marks handlers installed here so a second call replaces only those.
_HANDLER_TAG = "_task_storage_handler"

_LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console readable:
    - allow all task_storage logs
    - SQLAlchemy (engine echo, pool chatter) only at WARNING+
    - Python warnings (captured as 'py.warnings') only at ERROR+
    - any other third-party logger only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == "task_storage" or name.startswith("task_storage."):
            return True

        if name.startswith("sqlalchemy"):
            return record.levelno >= logging.WARNING

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        return record.levelno >= logging.ERROR


def _tagged(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    return handler


def _remove_own_handlers(root: logging.Logger) -> None:
    for h in list(root.handlers):
        if getattr(h, _HANDLER_TAG, False):
            root.removeHandler(h)
            h.close()


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasks",
    console_level: int | str = logging.INFO,
    file_level: int | str = logging.DEBUG,
    sql_echo: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Path:
    """
    Install the task store's handlers on the root logger.

    - stderr: task_storage records, third-party records only when serious
    - <log_dir>/tasks.log: everything, rotated at max_bytes

    sql_echo routes SQLAlchemy statement logging (sqlalchemy.engine at INFO)
    into the file instead of SQLAlchemy's own stdout handler.
    Handlers that belong to the host application are left in place.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tasks.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    _remove_own_handlers(root)

    fmt = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    console = _tagged(logging.StreamHandler(sys.stderr))
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    rotating = _tagged(
        logging.handlers.RotatingFileHandler(
            str(log_file), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    )
    rotating.setLevel(file_level)
    rotating.setFormatter(fmt)
    root.addHandler(rotating)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)
    logging.captureWarnings(True)
    return log_file
