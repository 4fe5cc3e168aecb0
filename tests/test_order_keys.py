# tests/test_order_keys.py

from __future__ import annotations

import math

import pytest

from flowforge.tasks.order_keys import allocate_orders, max_order

from .fakes import make_task


def test_empty_list_starts_at_zero() -> None:
    assert allocate_orders([], 3) == [0.0, 1000.0, 2000.0]


def test_batch_lands_after_existing_maximum() -> None:
    existing = [
        make_task("a", order=10, day="2024-01-01"),
        make_task("b", order=500, day="2024-01-02"),
        make_task("c", order=None),
    ]
    orders = allocate_orders(existing, 2)

    assert orders == [1500.0, 2500.0]
    assert all(o > 500 for o in orders)
    assert orders == sorted(set(orders))


def test_non_finite_orders_are_ignored() -> None:
    existing = [make_task("a", order=math.nan), make_task("b", order=math.inf)]
    assert max_order(existing) is None
    assert allocate_orders(existing, 2) == [0.0, 1000.0]


def test_custom_gap_and_zero_count() -> None:
    existing = [make_task("a", order=3)]
    assert allocate_orders(existing, 2, gap=10) == [13.0, 23.0]
    assert allocate_orders(existing, 0) == []


def test_gap_must_be_positive() -> None:
    with pytest.raises(ValueError):
        allocate_orders([], 1, gap=0)
