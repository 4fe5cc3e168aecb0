# src/flowforge/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from ..core.errors import PersistenceError, TaskNotFoundError
from ..core.ports import FieldUpdate, SnapshotCallback
from .task_models import Task, order_sort_key

logger = logging.getLogger(__name__)

# Public field name -> column. "order" is an SQL keyword, hence order_key.
_FIELD_COLUMNS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "completed": "completed",
    "completed_at": "completed_at",
    "scheduled_date": "scheduled_date",
    "scheduled_time": "scheduled_time",
    "order": "order_key",
    "parent_id": "parent_id",
}


def _to_column_value(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name == "completed":
        return 1 if value else 0
    if name == "order":
        return float(value)
    return str(value)


class TaskStore:
    """
    SQLite task store with a change stream.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Writes are atomic per call: a batch either commits as a whole or raises
    PersistenceError with nothing written. After each commit every subscriber of an
    affected user receives a fresh snapshot of that user's tasks.

    Thread-safety:
    - each method opens its own SQLite connection
    - async writes run their SQLite work in a worker thread (asyncio.to_thread);
      subscribers are notified back on the caller's thread
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._listeners: dict[str, list[SnapshotCallback]] = {}
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        self._listeners.clear()

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT,
                    scheduled_date TEXT,
                    scheduled_time TEXT,
                    order_key REAL,
                    parent_id TEXT,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("completed_at", "TEXT")
            add_col("scheduled_date", "TEXT")
            add_col("scheduled_time", "TEXT")
            add_col("order_key", "REAL")
            add_col("parent_id", "TEXT")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user_date ON tasks(user_id, scheduled_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            user_id=str(row["user_id"] or ""),
            description=str(row["description"] or ""),
            completed=bool(row["completed"]),
            completed_at=row["completed_at"],
            scheduled_date=row["scheduled_date"],
            scheduled_time=row["scheduled_time"],
            order=float(row["order_key"]) if row["order_key"] is not None else None,
            parent_id=row["parent_id"],
            created_at=float(row["created_at"] or 0.0),
        )

    @staticmethod
    def _nest(rows: list[sqlite3.Row]) -> list[Task]:
        flat = [TaskStore._row_to_task(r) for r in rows]
        by_id = {t.id: t for t in flat}
        top: list[Task] = []
        for t in flat:
            if t.parent_id is None:
                top.append(t)
                continue
            parent = by_id.get(t.parent_id)
            if parent is None:
                logger.debug("Orphan subtask id=%s parent=%s skipped", t.id, t.parent_id)
                continue
            parent.subtasks.append(t)
        for t in top:
            t.subtasks.sort(key=order_sort_key)
        return top

    # ---- change stream ----

    def subscribe(self, user_id: str, callback: SnapshotCallback) -> Callable[[], None]:
        """Register a snapshot listener; returns the matching unsubscribe function."""
        self._listeners.setdefault(user_id, []).append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(KeyError, ValueError):
                self._listeners[user_id].remove(callback)

        return unsubscribe

    def _notify(self, user_ids: set[str]) -> None:
        for user_id in user_ids:
            listeners = list(self._listeners.get(user_id, ()))
            if not listeners:
                continue
            snapshot = self.list_tasks_for_user(user_id)
            for cb in listeners:
                try:
                    cb(snapshot)
                except Exception:
                    logger.exception("Task snapshot listener failed user=%s", user_id)

    # ---- public API: reads ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def list_tasks_for_user(self, user_id: str) -> list[Task]:
        """
        Top-level tasks of a user with their subtasks nested.

        Sorted by scheduled_date (unscheduled first), then order.
        """
        if not user_id:
            return []

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE user_id = ?
                ORDER BY COALESCE(scheduled_date, ''), order_key IS NULL, order_key, created_at
                """,
                (user_id,),
            )
            return self._nest(cur.fetchall())
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
            row = cur.fetchone()
            if row is None:
                return None
            task = self._row_to_task(row)
            cur.execute(
                "SELECT * FROM tasks WHERE parent_id = ? ORDER BY order_key IS NULL, order_key",
                (task_id,),
            )
            task.subtasks = [self._row_to_task(r) for r in cur.fetchall()]
            return task
        finally:
            conn.close()

    # ---- public API: writes ----

    async def add_tasks(self, user_id: str, items: Sequence[Mapping[str, Any]]) -> list[str]:
        """
        Insert several tasks in one transaction and return their new ids.

        Each item needs a non-empty "title"; other keys follow the task field names.
        """
        if not user_id:
            raise ValueError("user_id is required")

        now = time.time()
        rows: list[tuple[Any, ...]] = []
        for item in items:
            title = str(item.get("title") or "").strip()
            if not title:
                raise ValueError("title is required")
            unknown = set(item) - set(_FIELD_COLUMNS) - {"id"}
            if unknown:
                raise ValueError(f"Unknown task fields: {sorted(unknown)}")
            rows.append(
                (
                    str(item.get("id") or uuid.uuid4().hex),
                    user_id,
                    title,
                    str(item.get("description") or ""),
                    _to_column_value("completed", item.get("completed", False)),
                    item.get("completed_at"),
                    item.get("scheduled_date"),
                    item.get("scheduled_time"),
                    _to_column_value("order", item.get("order")),
                    item.get("parent_id"),
                    now,
                    now,
                )
            )

        if not rows:
            return []

        await asyncio.to_thread(self._insert_rows, rows)

        ids = [r[0] for r in rows]
        logger.debug("Tasks added user=%s ids=%s", user_id, ids)
        self._notify({user_id})
        return ids

    def _insert_rows(self, rows: list[tuple[Any, ...]]) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO tasks(
                        id, user_id, title, description,
                        completed, completed_at, scheduled_date, scheduled_time,
                        order_key, parent_id, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to add tasks: {e}") from e
        finally:
            conn.close()

    async def update_task_fields(self, task_id: str, fields: Mapping[str, Any]) -> None:
        await self.batch_update([(task_id, fields)])

    async def batch_update(self, updates: Sequence[FieldUpdate]) -> None:
        """
        Apply partial field updates atomically.

        Raises:
        - ValueError for unknown field names (before touching the database),
        - PersistenceError when a task is missing or SQLite fails; the whole batch
          is rolled back in that case.
        """
        statements: list[tuple[str, list[Any], str]] = []
        for task_id, fields in updates:
            unknown = set(fields) - set(_FIELD_COLUMNS)
            if unknown:
                raise ValueError(f"Unknown task fields: {sorted(unknown)}")
            if not fields:
                continue
            sets = [f"{_FIELD_COLUMNS[name]} = ?" for name in fields]
            params = [_to_column_value(name, value) for name, value in fields.items()]
            sets.append("updated_at = ?")
            params.append(time.time())
            params.append(str(task_id))
            statements.append((f"UPDATE tasks SET {', '.join(sets)} WHERE id = ?", params, str(task_id)))

        if not statements:
            return

        touched_users = await asyncio.to_thread(self._run_updates, statements)
        logger.debug("Batch update committed n=%d", len(statements))
        self._notify(touched_users)

    def _run_updates(self, statements: list[tuple[str, list[Any], str]]) -> set[str]:
        touched_users: set[str] = set()
        conn = self._get_conn()
        try:
            with conn:
                for sql, params, task_id in statements:
                    cur = conn.execute(sql, params)
                    if cur.rowcount != 1:
                        raise PersistenceError(f"Task not found: {task_id}")
                    row = conn.execute("SELECT user_id FROM tasks WHERE id = ?", (task_id,)).fetchone()
                    touched_users.add(str(row["user_id"]))
        except sqlite3.Error as e:
            raise PersistenceError(f"Batch update failed: {e}") from e
        finally:
            conn.close()
        return touched_users

    async def delete_task(self, task_id: str) -> None:
        """Delete a task together with its subtasks."""
        user_id = await asyncio.to_thread(self._delete_rows, task_id)
        logger.debug("Task deleted id=%s", task_id)
        self._notify({user_id})

    def _delete_rows(self, task_id: str) -> str:
        conn = self._get_conn()
        try:
            with conn:
                row = conn.execute("SELECT user_id FROM tasks WHERE id = ?", (task_id,)).fetchone()
                if row is None:
                    raise TaskNotFoundError(task_id)
                conn.execute("DELETE FROM tasks WHERE id = ? OR parent_id = ?", (task_id, task_id))
                user_id = str(row["user_id"])
        except sqlite3.Error as e:
            raise PersistenceError(f"Delete failed: {e}") from e
        finally:
            conn.close()
        return user_id
