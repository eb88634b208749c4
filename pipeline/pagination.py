"""Fixed-size pagination over filtered records.

``paginate`` never raises for ``page >= 1``: asking past the last page
returns an empty slice.  Keeping ``page`` in range when filters change is
the caller's job; :class:`ViewState` is the caller-side helper that resets
to page 1 on every filter change.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pipeline.filters import FilterState
from utils.config import KnownValues


@dataclass(frozen=True)
class Page:
    page_records: tuple[Any, ...]
    page: int
    limit: int
    total: int
    total_pages: int

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def total_pages(count: int, limit: int) -> int:
    """``max(1, ceil(count / limit))``."""
    return max(1, math.ceil(count / limit))


def paginate(records: Sequence[Any], page: int = 1,
             limit: int = KnownValues.DEFAULT_PAGE_LIMIT) -> Page:
    """Slice *records* into the 1-based *page* of size *limit*.

    Raises:
        ValueError: If *page* or *limit* is less than 1.
    """
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    start = (page - 1) * limit
    return Page(
        page_records=tuple(records[start:start + limit]),
        page=page,
        limit=limit,
        total=len(records),
        total_pages=total_pages(len(records), limit),
    )


@dataclass(frozen=True)
class ViewState:
    """Filters plus current page for one entity page."""

    filters: FilterState = FilterState()
    page: int = 1
    limit: int = KnownValues.DEFAULT_PAGE_LIMIT

    def with_filter(self, key: str, value: str) -> "ViewState":
        """Apply a filter change and go back to the first page."""
        return dataclasses.replace(
            self, filters=self.filters.with_change(key, value), page=1,
        )

    def with_filters(self, filters: FilterState) -> "ViewState":
        if filters == self.filters:
            return self
        return dataclasses.replace(self, filters=filters, page=1)

    def with_page(self, page: int) -> "ViewState":
        """Move to *page*, keeping the filters."""
        return dataclasses.replace(self, page=max(1, page))

    def next_page(self) -> "ViewState":
        return self.with_page(self.page + 1)

    def prev_page(self) -> "ViewState":
        return self.with_page(self.page - 1)
