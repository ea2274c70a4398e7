"""Pagination — page sizes, slicing and the sliding page-number window."""

import math
from dataclasses import dataclass
from typing import Sequence

from ..utils.logging import get_logger

logger = get_logger("engine.pagination")

PAGE_SIZE_OPTIONS = (16, 30, 50, 100)
WINDOW_WIDTH = 5


@dataclass(frozen=True)
class PageControls:
    page: int
    total_pages: int
    window: list[int]
    show_first: bool
    show_last: bool

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "totalPages": self.total_pages,
            "window": list(self.window),
            "showFirst": self.show_first,
            "showLast": self.show_last,
        }


def total_pages(total_rows: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return math.ceil(total_rows / page_size) if total_rows > 0 else 0


def clamp_page(page: int, pages: int) -> int:
    return max(1, min(page, pages)) if pages > 0 else 1


def page_slice(items: Sequence, page: int, page_size: int) -> list:
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


def page_window(current: int, total: int, width: int = WINDOW_WIDTH) -> list[int]:
    """At most ``width`` page numbers around ``current``, clamped to [1, total]."""
    if total <= 0:
        return []
    start = max(1, current - width // 2)
    end = min(total, start + width - 1)
    if end - start < width - 1 and total >= width:
        start = max(1, end - width + 1)
    return list(range(start, end + 1))


def page_controls(current: int, total: int) -> PageControls:
    current = clamp_page(current, total)
    return PageControls(
        page=current,
        total_pages=total,
        window=page_window(current, total),
        show_first=current > 1,
        show_last=current < total,
    )


class Paginator:
    """Current page and page size of one grid session."""

    def __init__(self, page_size: int = PAGE_SIZE_OPTIONS[0], options: Sequence[int] = PAGE_SIZE_OPTIONS):
        self._options = tuple(options)
        if page_size not in self._options:
            raise ValueError(f"Page size {page_size} is not one of {self._options}")
        self._page_size = page_size
        self._page = 1
        self._row_count: int | None = None

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def options(self) -> tuple[int, ...]:
        return self._options

    @property
    def total_pages(self) -> int:
        return total_pages(self._row_count or 0, self._page_size)

    def set_page_size(self, page_size: int) -> None:
        if page_size not in self._options:
            raise ValueError(f"Page size {page_size} is not one of {self._options}")
        self._page_size = page_size
        self._page = 1
        logger.debug("page_size_changed", page_size=page_size)

    def go_to(self, page: int) -> int:
        self._page = clamp_page(page, self.total_pages)
        return self._page

    def sync_row_count(self, row_count: int) -> None:
        """Return to page 1 whenever the filtered row count changes."""
        if self._row_count is not None and row_count != self._row_count:
            self._page = 1
        self._row_count = row_count
        self._page = clamp_page(self._page, self.total_pages)

    def controls(self) -> PageControls:
        return page_controls(self._page, self.total_pages)
