# tests/test_store_lifecycle.py

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from task_storage.core.ports import TaskRepo
from task_storage.errors import DatabaseConnectionError, QueryError, StorageError
from task_storage.tasks.task_store import TaskStore


def test_open_rejects_malformed_url() -> None:
    with pytest.raises(DatabaseConnectionError):
        TaskStore.open("definitely not a database url")


def test_open_rejects_unsupported_dialect() -> None:
    with pytest.raises(DatabaseConnectionError) as exc_info:
        TaskStore.open("mysql://user:pw@localhost/tasks")
    assert "unsupported" in str(exc_info.value)


def test_open_unreachable_database(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'missing' / 'dir' / 'tasks.sqlite3'}"
    with pytest.raises(DatabaseConnectionError) as exc_info:
        TaskStore.open(url)
    # Also usable as the builtin ConnectionError.
    assert isinstance(exc_info.value, ConnectionError)
    assert exc_info.value.cause is not None


def test_operations_without_schema_raise_query_error(db_url: str) -> None:
    with TaskStore.open(db_url) as store:
        with pytest.raises(QueryError) as exc_info:
            store.list_tasks()
        assert exc_info.value.operation == "list_tasks"
        assert exc_info.value.__cause__ is not None


def test_ensure_schema_is_repeatable(store: TaskStore) -> None:
    task_id = store.create_task("t", "c")
    store.ensure_schema()
    assert [t.id for t in store.list_tasks()] == [task_id]


def test_context_manager_closes_pool(db_url: str) -> None:
    with TaskStore.open(db_url) as store:
        store.ensure_schema()
        assert store.ping()
    assert store.closed
    assert not store.ping()
    with pytest.raises(StorageError):
        store.list_tasks()
    # second close is a no-op
    store.close()


@pytest.mark.parametrize("url", ["sqlite://", "sqlite:///:memory:"])
def test_in_memory_store_is_shared_between_threads(url: str) -> None:
    with TaskStore.open(url) as store:
        store.ensure_schema()
        task_id = store.create_task("t", "c")

        seen: dict[str, object] = {}

        def worker() -> None:
            try:
                seen["ids"] = [t.id for t in store.list_tasks()]
                seen["new"] = store.create_task("from worker", "c")
            except BaseException as exc:  # surfaced by the assertion below
                seen["err"] = exc

        t = threading.Thread(target=worker)
        t.start()
        t.join()

        assert "err" not in seen, seen.get("err")
        assert seen["ids"] == [task_id]
        assert [x.id for x in store.list_tasks()] == [task_id, seen["new"]]


def test_store_satisfies_task_repo_port(store: TaskStore) -> None:
    assert isinstance(store, TaskRepo)


def test_concurrent_creates_get_unique_ids(store: TaskStore) -> None:
    ids: list[int] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def worker(n: int) -> None:
        try:
            for i in range(5):
                task_id = store.create_task(f"w{n}-{i}", "c", author_id=n)
                with lock:
                    ids.append(task_id)
        except BaseException as exc:  # surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(ids) == 20
    assert len(set(ids)) == 20
    assert [t.id for t in store.list_tasks()] == sorted(ids)
    assert len(store.find_tasks_by_author(3)) == 5
