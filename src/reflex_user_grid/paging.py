"""Page arithmetic: keep the page number inside the current result set."""

import math
from collections.abc import Sequence
from typing import TypeVar

import polars as pl

Rows = TypeVar("Rows", Sequence, pl.DataFrame)


def total_pages(total: int, page_size: int) -> int:
    """``max(1, ceil(total / page_size))`` -- an empty result still has one page."""
    if page_size < 1:
        raise ValueError(f"page size must be positive, got {page_size}")
    return max(1, math.ceil(max(0, total) / page_size))


def reconcile_page(page: int, total: int, page_size: int) -> int:
    """Clamp *page* into ``[1, total_pages(total, page_size)]``.

    Examples:
        ``reconcile_page(3, 23, 10)`` -> ``3``
        ``reconcile_page(3, 23, 20)`` -> ``2``
        ``reconcile_page(0, 0, 10)`` -> ``1``
    """
    return min(max(1, page), total_pages(total, page_size))


def page_offset(page: int, page_size: int) -> int:
    """Zero-based offset of the first row on *page*."""
    return (max(1, page) - 1) * page_size


def page_slice(items: Rows, page: int, page_size: int) -> Rows:
    """Rows of *items* shown on *page* (a list slice or a DataFrame slice)."""
    offset = page_offset(page, page_size)
    if isinstance(items, pl.DataFrame):
        return items.slice(offset, page_size)
    return items[offset:offset + page_size]
