# src/flowforge/tasks/order_keys.py

from __future__ import annotations

from collections.abc import Iterable

from .task_models import Task

DEFAULT_GAP = 1000.0


def max_order(tasks: Iterable[Task]) -> float | None:
    """Largest finite order among tasks, or None when there is none."""
    best: float | None = None
    for t in tasks:
        if not t.has_order():
            continue
        value = float(t.order)  # type: ignore[arg-type]
        if best is None or value > best:
            best = value
    return best


def allocate_orders(existing: Iterable[Task], count: int, *, gap: float = DEFAULT_GAP) -> list[float]:
    """
    Order keys for `count` new tasks appended after every existing task.

    Keys are spaced by `gap` so later moves can interpolate between neighbours:
    - empty list (or no finite orders): 0, gap, 2*gap, ...
    - otherwise: max + gap, max + 2*gap, ...

    The maximum is taken over whatever `existing` holds; callers pass the global task
    list for top-level tasks and the parent's subtasks for subtasks.
    """
    if count <= 0:
        return []
    if gap <= 0:
        raise ValueError("gap must be positive")

    top = max_order(existing)
    if top is None:
        return [gap * i for i in range(count)]
    return [top + gap * (1 + i) for i in range(count)]
