# src/flowforge/tasks/task_api.py

"""
High-level task operations used by the connectors.

Every operation reads the current snapshot, computes its changes synchronously and
hands them to the reconciliation layer (state.tasks); nothing here writes the store
directly except creation and deletion.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from ..core.errors import FlowForgeError, TaskNotFoundError
from ..core.state import AppState
from .order_keys import allocate_orders
from .propagation import reorder_all_tasks
from .reorder import active_siblings, compute_move
from .task_models import Direction, Task, order_sort_key

logger = logging.getLogger(__name__)


def tasks_for_date(state: AppState, scheduled_date: str | None) -> list[Task]:
    """Top-level tasks of one partition in display order (None -> Unscheduled)."""
    day = [t for t in state.tasks.snapshot() if t.scheduled_date == scheduled_date]
    return sorted(day, key=order_sort_key)


def siblings_of(state: AppState, task: Task) -> list[Task]:
    """The ordering partition a task belongs to."""
    if task.parent_id is not None:
        parent = state.tasks.find(task.parent_id)
        return list(parent.subtasks) if parent is not None else []
    return [t for t in state.tasks.snapshot() if t.scheduled_date == task.scheduled_date]


async def add_tasks(
    state: AppState,
    items: Sequence[Mapping[str, Any]],
    *,
    scheduled_date: str | None = None,
) -> list[str]:
    """
    Append new top-level tasks after every existing task.

    items: [{"title": ..., "description": ...}, ...]
    """
    clean = [dict(i) for i in items if str(i.get("title") or "").strip()]
    if not clean:
        return []

    orders = allocate_orders(state.tasks.snapshot(), len(clean), gap=state.order_gap)
    payload = []
    for item, order in zip(clean, orders):
        item.setdefault("scheduled_date", scheduled_date)
        item["order"] = order
        payload.append(item)

    try:
        ids = await state.task_store.add_tasks(state.user_id, payload)
    except FlowForgeError:
        logger.exception("add_tasks failed n=%d", len(payload))
        state.notifier.notify("Could not add tasks", "Please try again.", variant="destructive")
        return []

    state.notifier.notify("Tasks added!", f"{len(ids)} task(s) added.")
    return ids


async def add_subtasks(state: AppState, parent_id: str, items: Sequence[Mapping[str, Any]]) -> list[str]:
    parent = state.tasks.find(parent_id)
    if parent is None:
        raise TaskNotFoundError(parent_id)
    if parent.parent_id is not None:
        raise ValueError("Subtasks are nested one level only")

    clean = [dict(i) for i in items if str(i.get("title") or "").strip()]
    if not clean:
        return []

    orders = allocate_orders(parent.subtasks, len(clean), gap=state.order_gap)
    payload = []
    for item, order in zip(clean, orders):
        item["parent_id"] = parent.id
        item["scheduled_date"] = parent.scheduled_date
        item["order"] = order
        payload.append(item)

    try:
        ids = await state.task_store.add_tasks(state.user_id, payload)
    except FlowForgeError:
        logger.exception("add_subtasks failed parent=%s", parent_id)
        state.notifier.notify("Could not add subtasks", "Please try again.", variant="destructive")
        return []

    state.notifier.notify("Subtasks added!", f"{len(ids)} subtask(s) added to \"{parent.title}\".")
    return ids


async def move_task(state: AppState, task_id: str, direction: Direction | str) -> bool:
    """
    Move a task one slot up/down inside its partition.

    Returns False when nothing moved (unknown task, boundary) or the write failed.
    """
    task = state.tasks.find(task_id)
    if task is None:
        logger.debug("move_task: unknown task %s", task_id)
        return False

    updates = compute_move(task_id, direction, siblings_of(state, task), gap=state.order_gap)
    if not updates:
        return False
    return await state.tasks.apply_order_updates(updates)


async def propagate_template_order(
    state: AppState,
    template_date: str,
    start_date: str | None = None,
    end_date: str | None = None,
) -> int:
    """
    Make other days follow the template day's order. Returns the number of tasks
    re-keyed (0 for nothing to do or a failed write).
    """
    result = reorder_all_tasks(state.tasks.snapshot(), template_date, start_date, end_date)
    if not result:
        state.notifier.notify("Nothing to reorder", f"Other days already follow {template_date}.")
        return 0

    ok = await state.tasks.apply_order_updates(
        result.updates,
        success_title="Tasks reordered!",
        success_description=f"{len(result.updates)} task(s) now follow the order of {template_date}.",
    )
    return len(result.updates) if ok else 0


async def toggle_task(state: AppState, task_id: str) -> bool:
    task = state.tasks.find(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    completing = not task.completed
    fields: dict[str, Any] = {
        "completed": completing,
        "completed_at": datetime.now(timezone.utc).isoformat() if completing else None,
    }
    return await state.tasks.apply_updates(
        [(task_id, fields)],
        success_title="Task completed!" if completing else None,
        success_description=task.title,
    )


async def update_task(state: AppState, task_id: str, **fields: Any) -> bool:
    if state.tasks.find(task_id) is None:
        raise TaskNotFoundError(task_id)
    if "order" in fields:
        raise ValueError("order is managed by move_task/propagate_template_order")
    return await state.tasks.apply_updates([(task_id, fields)])


async def delete_task(state: AppState, task_id: str) -> bool:
    task = state.tasks.find(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    try:
        await state.task_store.delete_task(task_id)
    except FlowForgeError:
        logger.exception("delete_task failed id=%s", task_id)
        state.notifier.notify("Could not delete task", "Please try again.", variant="destructive")
        return False
    state.notifier.notify("Task deleted", f"\"{task.title}\" has been removed.")
    return True


def visible_position(state: AppState, task_id: str) -> int | None:
    """0-based position of a task among its incomplete siblings."""
    task = state.tasks.find(task_id)
    if task is None:
        return None
    ordered = active_siblings(siblings_of(state, task))
    return next((i for i, t in enumerate(ordered) if t.id == task_id), None)
