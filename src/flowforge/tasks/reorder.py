# src/flowforge/tasks/reorder.py

"""
Pairwise reorder: move one task a single slot up or down among its siblings.

Only incomplete siblings take part. The moved task receives the midpoint between
the target neighbour and the element beyond it, so exactly one key is rewritten.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .order_keys import DEFAULT_GAP
from .task_models import Direction, OrderUpdate, Task, order_sort_key

logger = logging.getLogger(__name__)


def midpoint(a: float, b: float) -> float:
    return (a + b) / 2


def active_siblings(siblings: Sequence[Task]) -> list[Task]:
    """Incomplete siblings in user-visible order."""
    return sorted((t for t in siblings if not t.completed), key=order_sort_key)


def compute_move(
    task_id: str,
    direction: Direction | str,
    siblings: Sequence[Task],
    *,
    gap: float = DEFAULT_GAP,
) -> list[OrderUpdate]:
    """
    New order keys for moving `task_id` one slot in `direction`.

    Returns:
    - [] when the task is not among the incomplete siblings, or the move would leave
      the list (first task up, last task down);
    - one update (the moved task) in the normal case;
    - two updates (a literal swap) when the midpoint no longer lands strictly between
      its neighbours after repeated halving;
    - a re-spacing of the whole active list when even a swap cannot express the move
      (missing keys, or keys shared with another sibling).
    """
    direction = Direction.parse(direction)
    active = active_siblings(siblings)

    index = next((i for i, t in enumerate(active) if t.id == task_id), -1)
    if index == -1:
        logger.debug("compute_move: task %s not found among active siblings", task_id)
        return []

    step = -1 if direction == Direction.UP else 1
    target_index = index + step
    if target_index < 0 or target_index >= len(active):
        return []

    moving = active[index]
    target = active[target_index]
    if not (moving.has_order() and target.has_order()):
        return _respace(active, index, target_index, gap)

    target_order = float(target.order)  # type: ignore[arg-type]
    beyond_index = target_index + step
    if 0 <= beyond_index < len(active) and active[beyond_index].has_order():
        beyond_order = float(active[beyond_index].order)  # type: ignore[arg-type]
    elif direction == Direction.UP:
        beyond_order = target_order - gap
    else:
        beyond_order = target_order + gap

    new_order = midpoint(beyond_order, target_order)
    low, high = sorted((beyond_order, target_order))
    if not (low < new_order < high):
        logger.warning(
            "compute_move: no room between %r and %r; swapping %s and %s",
            low,
            high,
            moving.id,
            target.id,
        )
        return _swap(active, index, target_index, gap)

    return [OrderUpdate(task_id=moving.id, order=new_order)]


def _swap(active: list[Task], index: int, target_index: int, gap: float) -> list[OrderUpdate]:
    moving, target = active[index], active[target_index]
    # swapped keys must stay unique within the partition
    others = {t.order for i, t in enumerate(active) if i not in (index, target_index)}
    if moving.order == target.order or moving.order in others or target.order in others:
        return _respace(active, index, target_index, gap)
    return [
        OrderUpdate(task_id=moving.id, order=float(target.order)),  # type: ignore[arg-type]
        OrderUpdate(task_id=target.id, order=float(moving.order)),  # type: ignore[arg-type]
    ]


def _respace(active: list[Task], index: int, target_index: int, gap: float) -> list[OrderUpdate]:
    """Rewrite the active list as 0, gap, 2*gap, ... with the move applied."""
    moved = list(active)
    moved[index], moved[target_index] = moved[target_index], moved[index]
    out: list[OrderUpdate] = []
    for position, task in enumerate(moved):
        new_order = gap * position
        if task.order != new_order:
            out.append(OrderUpdate(task_id=task.id, order=new_order))
    logger.info("compute_move: re-spaced %d sibling keys", len(out))
    return out
