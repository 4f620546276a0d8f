from __future__ import annotations

import itertools

import polars as pl
import pytest

from reflex_user_grid.paging import page_offset, page_slice, reconcile_page, total_pages


@pytest.mark.parametrize(
    ("total", "page_size", "expected"),
    [(0, 10, 1), (1, 10, 1), (10, 10, 1), (11, 10, 2), (23, 10, 3), (23, 20, 2), (208, 50, 5)],
)
def test_total_pages(total: int, page_size: int, expected: int) -> None:
    assert total_pages(total, page_size) == expected


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        total_pages(10, 0)


def test_scenario_page_size_change_clamps() -> None:
    assert total_pages(23, 10) == 3
    assert reconcile_page(3, 23, 10) == 3
    assert total_pages(23, 20) == 2
    assert reconcile_page(3, 23, 20) == 2


def test_reconciled_page_always_in_bounds() -> None:
    for total, page_size, page in itertools.product(range(0, 60, 7), (1, 5, 10, 20, 50), range(-2, 15)):
        reconciled = reconcile_page(page, total, page_size)
        assert 1 <= reconciled <= max(1, -(-total // page_size))


def test_page_slice() -> None:
    items = list(range(23))
    assert page_offset(3, 10) == 20
    assert page_slice(items, 1, 10) == list(range(10))
    assert page_slice(items, 3, 10) == [20, 21, 22]
    assert page_slice(items, 4, 10) == []


def test_page_slice_of_a_frame() -> None:
    frame = pl.DataFrame({"id": list(range(23))})
    assert page_slice(frame, 3, 10)["id"].to_list() == [20, 21, 22]
    assert page_slice(frame, 4, 10).height == 0
