# tests/test_task_store.py

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

import pytest

from flowforge.core.errors import PersistenceError, TaskNotFoundError
from flowforge.tasks.task_store import TaskStore


@pytest.mark.asyncio
async def test_add_list_and_nest_subtasks(store: TaskStore) -> None:
    a, b = await store.add_tasks(
        "u1",
        [
            {"title": "Later", "order": 2000.0, "scheduled_date": "2024-01-01"},
            {"title": "First", "order": 1000.0, "scheduled_date": "2024-01-01"},
        ],
    )
    (sub,) = await store.add_tasks("u1", [{"title": "Step", "order": 0.0, "parent_id": a}])
    await store.add_tasks("u2", [{"title": "Someone else"}])

    tasks = store.list_tasks_for_user("u1")

    assert [t.title for t in tasks] == ["First", "Later"]
    later = tasks[1]
    assert later.id == a
    assert [s.id for s in later.subtasks] == [sub]
    assert later.subtasks[0].parent_id == a
    assert store.count_tasks() == 4

    fetched = store.get_task(a)
    assert fetched is not None
    assert [s.title for s in fetched.subtasks] == ["Step"]
    assert store.get_task("nope") is None
    assert b in {t.id for t in tasks}


@pytest.mark.asyncio
async def test_add_requires_title(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        await store.add_tasks("u1", [{"title": "  "}])
    with pytest.raises(ValueError):
        await store.add_tasks("u1", [{"title": "x", "colour": "red"}])


@pytest.mark.asyncio
async def test_batch_update_is_atomic(store: TaskStore) -> None:
    (a,) = await store.add_tasks("u1", [{"title": "A", "order": 0.0}])

    with pytest.raises(PersistenceError):
        await store.batch_update([(a, {"order": 5.0}), ("missing", {"order": 1.0})])

    task = store.get_task(a)
    assert task is not None
    assert task.order == 0.0


@pytest.mark.asyncio
async def test_batch_update_writes_fields(store: TaskStore) -> None:
    (a,) = await store.add_tasks("u1", [{"title": "A", "order": 0.0}])

    await store.batch_update([(a, {"order": 12.5, "completed": True, "completed_at": "2024-01-01T10:00:00"})])
    await store.update_task_fields(a, {"title": "A2", "scheduled_date": "2024-01-03"})

    task = store.get_task(a)
    assert task is not None
    assert (task.order, task.completed, task.title, task.scheduled_date) == (12.5, True, "A2", "2024-01-03")


@pytest.mark.asyncio
async def test_unknown_fields_are_rejected(store: TaskStore) -> None:
    (a,) = await store.add_tasks("u1", [{"title": "A"}])
    with pytest.raises(ValueError):
        await store.update_task_fields(a, {"priority": 3})


@pytest.mark.asyncio
async def test_subscribers_receive_snapshots(store: TaskStore) -> None:
    received: list[list[str]] = []

    def boom(_tasks) -> None:
        raise RuntimeError("listener bug")

    store.subscribe("u1", boom)
    unsubscribe = store.subscribe("u1", lambda tasks: received.append([t.title for t in tasks]))

    (a,) = await store.add_tasks("u1", [{"title": "A"}])
    await store.update_task_fields(a, {"title": "B"})
    unsubscribe()
    await store.update_task_fields(a, {"title": "C"})

    assert received == [["A"], ["B"]]


@pytest.mark.asyncio
async def test_delete_removes_subtasks(store: TaskStore) -> None:
    (parent,) = await store.add_tasks("u1", [{"title": "P"}])
    await store.add_tasks("u1", [{"title": "S", "parent_id": parent}])

    await store.delete_task(parent)

    assert store.count_tasks() == 0
    with pytest.raises(TaskNotFoundError):
        await store.delete_task(parent)


@pytest.mark.asyncio
async def test_writes_run_off_the_event_loop_thread(store: TaskStore, monkeypatch) -> None:
    loop_thread = threading.get_ident()
    write_threads: list[int] = []
    notify_threads: list[int] = []
    real_get_conn = store._get_conn

    def tracking_get_conn() -> sqlite3.Connection:
        write_threads.append(threading.get_ident())
        return real_get_conn()

    monkeypatch.setattr(store, "_get_conn", tracking_get_conn)
    store.subscribe("u1", lambda _tasks: notify_threads.append(threading.get_ident()))

    (task_id,) = await store.add_tasks("u1", [{"title": "A"}])
    await store.batch_update([(task_id, {"order": 5.0})])
    await store.delete_task(task_id)

    # one worker write per call, plus the snapshot read each notify does on the loop thread
    off_loop = [t for t in write_threads if t != loop_thread]
    assert len(off_loop) == 3
    assert notify_threads == [loop_thread] * 3


@pytest.mark.asyncio
async def test_old_schema_is_migrated(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(str(db))
    conn.execute("CREATE TABLE tasks (id TEXT PRIMARY KEY, user_id TEXT NOT NULL, title TEXT NOT NULL)")
    conn.execute("INSERT INTO tasks(id, user_id, title) VALUES ('legacy', 'u1', 'Old task')")
    conn.commit()
    conn.close()

    store = TaskStore(db)
    await store.add_tasks("u1", [{"title": "New", "order": 1000.0}])

    tasks = store.list_tasks_for_user("u1")
    assert [t.title for t in tasks] == ["New", "Old task"]
    assert tasks[1].order is None
    assert tasks[1].completed is False
