# src/flowforge/tasks/propagation.py

"""
Template propagation.

Makes every other day follow the task order of one "template" day:
- tasks whose title appears on the template day sort by the template position
  (first occurrence wins for duplicate titles),
- tasks with unknown titles go last,
- ties keep their previous relative order,
- each rewritten day is re-indexed 0..N-1.

Pure function over its inputs, no store access.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import date

from .task_models import OrderUpdate, ReorderResult, Task, order_sort_key

logger = logging.getLogger(__name__)


def _parse_day(raw: str | None, what: str) -> date | None:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise ValueError(f"{what} must be an ISO date (YYYY-MM-DD), got {raw!r}") from None


def build_title_index(template_tasks: Iterable[Task]) -> dict[str, int]:
    """title -> position on the template day; the first occurrence keeps its index."""
    index: dict[str, int] = {}
    for position, task in enumerate(sorted(template_tasks, key=order_sort_key)):
        index.setdefault(task.title, position)
    return index


def _in_range(day: str, start: date | None, end: date | None) -> bool:
    if start is None and end is None:
        return True
    try:
        d = date.fromisoformat(day)
    except ValueError:
        logger.debug("propagation: skipping unparseable scheduled_date %r", day)
        return False
    if start is not None and d < start:
        return False
    if end is not None and d > end:
        return False
    return True


def reorder_all_tasks(
    all_tasks: Iterable[Task],
    template_date: str,
    start_date: str | None = None,
    end_date: str | None = None,
) -> ReorderResult:
    """
    Order updates that make every other day mirror the template day's order.

    Notes:
    - Unscheduled tasks are never touched.
    - Completed tasks are not re-keyed; on the template day they still count
      (their titles express the user's arrangement).
    - start_date/end_date are inclusive; each bound applies on its own.
    - Only tasks whose order actually changes are reported.
    """
    template_day = _parse_day(template_date, "template_date")
    if template_day is None:
        raise ValueError("template_date is required")
    template_key = template_day.isoformat()
    start = _parse_day(start_date, "start_date")
    end = _parse_day(end_date, "end_date")

    tasks = list(all_tasks)

    template_tasks = [t for t in tasks if t.scheduled_date == template_key and t.has_order()]
    if not template_tasks:
        logger.debug("propagation: no template tasks on %s", template_key)
        return ReorderResult()

    title_index = build_title_index(template_tasks)

    by_day: dict[str, list[Task]] = {}
    for task in tasks:
        day = task.scheduled_date
        if not day or day == template_key or task.completed:
            continue
        if not _in_range(day, start, end):
            continue
        by_day.setdefault(day, []).append(task)

    def sort_key(task: Task) -> tuple[float, tuple[bool, float]]:
        return (title_index.get(task.title, math.inf), order_sort_key(task))

    updates: list[OrderUpdate] = []
    for day in sorted(by_day):
        for position, task in enumerate(sorted(by_day[day], key=sort_key)):
            if task.order != position:
                updates.append(OrderUpdate(task_id=task.id, order=float(position)))

    logger.info(
        "propagation: template=%s days=%d updates=%d",
        template_key,
        len(by_day),
        len(updates),
    )
    return ReorderResult(updates=updates)
