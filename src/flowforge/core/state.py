# src/flowforge/core/state.py

"""
Task state container (reconciliation layer).

Owns the in-memory task list shown to the user and is the only writer of it.
Two channels feed it:
- commands: optimistic updates (begin -> persist -> commit | rollback),
- events: snapshots pushed by the task store's change stream.

Confirmed values (last snapshot) and pending optimistic layers are kept apart, so a
failed write is undone by dropping its layer without touching anything else.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from ..tasks.task_models import OrderUpdate, Task
from .ports import FieldUpdate, Notifier, TaskRepo

logger = logging.getLogger(__name__)

FAILURE_TITLE = "Update failed"
FAILURE_DESCRIPTION = "Could not save your changes. Please try again."


@dataclass(slots=True)
class PendingLayer:
    op_id: int
    fields: dict[str, dict[str, Any]] = field(default_factory=dict)  # task_id -> fields


def _overlay(task: Task, layers: Sequence[PendingLayer]) -> Task:
    changes: dict[str, Any] = {}
    for layer in layers:
        changes.update(layer.fields.get(task.id, {}))
    subtasks = [_overlay(s, layers) for s in task.subtasks]
    return replace(task, subtasks=subtasks, **changes)


def _walk(tasks: Iterable[Task]) -> Iterable[Task]:
    for t in tasks:
        yield t
        yield from t.subtasks


class TaskState:
    def __init__(self, repo: TaskRepo, notifier: Notifier, user_id: str) -> None:
        self.repo = repo
        self.notifier = notifier
        self.user_id = user_id
        self._confirmed: list[Task] = []
        self._pending: list[PendingLayer] = []
        self._op_ids = itertools.count(1)
        self._unsubscribe: Callable[[], None] | None = None

    # ---- event channel ----

    def attach(self) -> None:
        """Load the current task list and follow the store's change stream."""
        if self._unsubscribe is not None:
            return
        self.on_remote_snapshot(self.repo.list_tasks_for_user(self.user_id))
        self._unsubscribe = self.repo.subscribe(self.user_id, self.on_remote_snapshot)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_remote_snapshot(self, tasks: list[Task]) -> None:
        self._confirmed = list(tasks)
        logger.debug("Remote snapshot user=%s tasks=%d pending=%d", self.user_id, len(tasks), len(self._pending))

    # ---- read side ----

    def snapshot(self) -> list[Task]:
        """Confirmed tasks with pending optimistic changes applied (copies)."""
        layers = list(self._pending)
        return [_overlay(t, layers) for t in self._confirmed]

    def find(self, task_id: str) -> Task | None:
        return next((t for t in _walk(self.snapshot()) if t.id == task_id), None)

    def all_tasks(self) -> list[Task]:
        """Flat list of tasks and subtasks."""
        return list(_walk(self.snapshot()))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ---- command channel ----

    def begin(self, updates: Sequence[FieldUpdate]) -> int:
        """Apply updates optimistically and return the op id used to commit or roll back."""
        layer = PendingLayer(op_id=next(self._op_ids))
        for task_id, fields in updates:
            layer.fields.setdefault(task_id, {}).update(dict(fields))
        self._pending.append(layer)
        return layer.op_id

    def commit(self, op_id: int) -> None:
        layer = self._pop_layer(op_id)
        if layer is None:
            return
        self._confirmed = [_overlay(t, [layer]) for t in self._confirmed]

    def rollback(self, op_id: int) -> None:
        layer = self._pop_layer(op_id)
        if layer is not None:
            logger.info("Rolled back op=%s tasks=%s", op_id, sorted(layer.fields))

    def _pop_layer(self, op_id: int) -> PendingLayer | None:
        for i, layer in enumerate(self._pending):
            if layer.op_id == op_id:
                return self._pending.pop(i)
        return None

    async def apply_updates(
        self,
        updates: Sequence[FieldUpdate],
        *,
        success_title: str | None = None,
        success_description: str = "",
        failure_title: str = FAILURE_TITLE,
        failure_description: str = FAILURE_DESCRIPTION,
    ) -> bool:
        """
        Optimistically apply and persist one logical operation as a batch.

        Returns True when persisted. On failure the optimistic changes are rolled back,
        exactly one failure toast is shown and False is returned.
        An empty update list is a no-op and returns True.
        """
        updates = [(task_id, dict(fields)) for task_id, fields in updates]
        if not updates:
            return True

        op_id = self.begin(updates)
        try:
            await self.repo.batch_update(updates)
        except Exception:
            logger.exception("Persisting op=%s failed (n=%d); rolling back", op_id, len(updates))
            self.rollback(op_id)
            self.notifier.notify(failure_title, failure_description, variant="destructive")
            return False

        self.commit(op_id)
        if success_title:
            self.notifier.notify(success_title, success_description)
        return True

    async def apply_order_updates(
        self,
        updates: Iterable[OrderUpdate],
        *,
        success_title: str | None = None,
        success_description: str = "",
    ) -> bool:
        field_updates: list[tuple[str, Mapping[str, Any]]] = [(u.task_id, {"order": u.order}) for u in updates]
        return await self.apply_updates(
            field_updates,
            success_title=success_title,
            success_description=success_description,
            failure_title="Reorder failed",
            failure_description="Could not save the new task order. Please try again.",
        )


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    llm: Any  # LLMClient
    task_store: TaskRepo
    tasks: TaskState
    notifier: Notifier

    @property
    def user_id(self) -> str:
        return self.tasks.user_id

    @property
    def order_gap(self) -> float:
        return float(getattr(self.settings, "order_gap", 1000.0))
