# src/flowforge/tasks/task_models.py

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum

UNSCHEDULED = "Unscheduled"


class Direction(StrEnum):
    UP = "up"
    DOWN = "down"

    @classmethod
    def parse(cls, raw: str) -> Direction:
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValueError(f"direction must be 'up' or 'down', got {raw!r}") from None


@dataclass(slots=True)
class Task:
    """
    The unit being ordered.

    Notes:
    - scheduled_date is an ISO calendar date (YYYY-MM-DD); None means "Unscheduled".
    - order is partition-local: only compared against tasks with the same scheduled_date
      (or, for subtasks, against siblings under the same parent).
    """

    id: str
    title: str
    user_id: str = ""
    description: str = ""
    completed: bool = False
    completed_at: str | None = None
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    order: float | None = None
    parent_id: str | None = None
    created_at: float = 0.0
    subtasks: list[Task] = field(default_factory=list)

    @property
    def partition(self) -> str:
        return self.scheduled_date or UNSCHEDULED

    def has_order(self) -> bool:
        return self.order is not None and math.isfinite(self.order)


@dataclass(slots=True, frozen=True)
class OrderUpdate:
    task_id: str
    order: float


@dataclass(slots=True, frozen=True)
class ReorderResult:
    updates: list[OrderUpdate] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.updates)


def order_sort_key(task: Task) -> tuple[bool, float]:
    """Ascending order; tasks without a usable order go last."""
    if task.has_order():
        return (False, float(task.order))  # type: ignore[arg-type]
    return (True, 0.0)
