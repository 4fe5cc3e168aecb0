# tests/test_reorder.py

from __future__ import annotations

import math

import pytest

from flowforge.tasks.reorder import compute_move
from flowforge.tasks.task_models import Direction

from .fakes import apply_orders, make_task


def _abc():
    return [
        make_task("A", order=10, day="2024-01-01"),
        make_task("B", order=20, day="2024-01-01"),
        make_task("C", order=30, day="2024-01-01"),
    ]


def test_move_up_swaps_with_previous_and_rewrites_one_key() -> None:
    tasks = _abc()
    updates = compute_move("B", Direction.UP, tasks)

    assert [u.task_id for u in updates] == ["B"]
    assert updates[0].order < 10
    assert [t.id for t in apply_orders(tasks, updates)] == ["B", "A", "C"]


def test_move_down_from_the_middle() -> None:
    tasks = _abc()
    updates = compute_move("B", "down", tasks)

    assert updates[0].order == 530.0
    assert [t.id for t in apply_orders(tasks, updates)] == ["A", "C", "B"]


def test_move_uses_midpoint_with_neighbour_beyond_target() -> None:
    tasks = _abc()
    updates = compute_move("A", Direction.DOWN, tasks)

    assert len(updates) == 1
    assert updates[0].order == 25.0
    assert [t.id for t in apply_orders(tasks, updates)] == ["B", "A", "C"]


def test_boundaries_are_noops() -> None:
    tasks = _abc()
    assert compute_move("A", Direction.UP, tasks) == []
    assert compute_move("C", Direction.DOWN, tasks) == []


def test_unknown_task_is_a_silent_noop() -> None:
    assert compute_move("missing", Direction.UP, _abc()) == []


def test_completed_tasks_are_skipped() -> None:
    tasks = [
        make_task("A", order=10),
        make_task("X", order=15, completed=True),
        make_task("B", order=20),
    ]
    updates = compute_move("B", Direction.UP, tasks)
    assert [u.task_id for u in updates] == ["B"]
    assert updates[0].order < 10

    assert compute_move("X", Direction.UP, tasks) == []


def test_unsorted_input_is_sorted_by_order_first() -> None:
    tasks = list(reversed(_abc()))
    updates = compute_move("C", Direction.UP, tasks)
    assert updates[0].order == 15.0


def test_exhausted_precision_falls_back_to_swap() -> None:
    tasks = [
        make_task("A", order=1.0),
        make_task("B", order=math.nextafter(1.0, 2.0)),
        make_task("C", order=5.0),
    ]
    updates = compute_move("C", Direction.UP, tasks)

    assert {u.task_id for u in updates} == {"B", "C"}
    assert [t.id for t in apply_orders(tasks, updates)] == ["A", "C", "B"]


def test_duplicate_keys_are_respaced() -> None:
    tasks = [make_task("A", order=10), make_task("B", order=10), make_task("C", order=10)]
    updates = compute_move("C", Direction.UP, tasks)

    assert len(updates) == 3
    assert [t.id for t in apply_orders(tasks, updates)] == ["A", "C", "B"]


def test_key_shared_with_sibling_beyond_target_is_respaced() -> None:
    tasks = [make_task("C", order=20), make_task("A", order=10), make_task("B", order=10)]
    updates = compute_move("C", Direction.UP, tasks)

    assert [t.id for t in apply_orders(tasks, updates)] == ["A", "C", "B"]
    assert len({u.order for u in updates}) == len(updates)


def test_move_down_into_equal_keys_keeps_target_position() -> None:
    tasks = [make_task("C", order=20), make_task("B", order=20), make_task("A", order=10)]
    updates = compute_move("A", Direction.DOWN, tasks)

    assert [t.id for t in apply_orders(tasks, updates)] == ["C", "A", "B"]


def test_missing_keys_are_respaced() -> None:
    tasks = [make_task("A", order=0), make_task("B", order=None)]
    updates = compute_move("B", Direction.UP, tasks)

    assert [t.id for t in apply_orders(tasks, updates)] == ["B", "A"]


def test_invalid_direction() -> None:
    with pytest.raises(ValueError):
        compute_move("A", "sideways", _abc())
