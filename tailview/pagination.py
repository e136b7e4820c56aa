from __future__ import annotations

import math
from typing import Any, Sequence

from .models import LogEntry

PAGE_SIZE = 50
PAGE_WINDOW = 20


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    if count <= 0:
        return 1
    return max(1, math.ceil(count / page_size))


class Paginator:
    """Holds the full filtered result and slices the page currently shown.

    ``current_page`` is kept inside ``[1, total_pages]`` after every call.
    Out-of-range navigation is clamped silently.
    """

    def __init__(self, entries: Sequence[LogEntry] = (), *, page_size: int = PAGE_SIZE) -> None:
        self.page_size = page_size
        self._entries: tuple[LogEntry, ...] = tuple(entries)
        self.current_page = 1

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return self._entries

    @property
    def total_pages(self) -> int:
        return total_pages(len(self._entries), self.page_size)

    @property
    def visible(self) -> tuple[LogEntry, ...]:
        start = (self.current_page - 1) * self.page_size
        return self._entries[start : start + self.page_size]

    @property
    def is_first(self) -> bool:
        return self.current_page == 1

    @property
    def is_last(self) -> bool:
        return self.current_page == self.total_pages

    def set_entries(self, entries: Sequence[LogEntry], *, reset: bool = False) -> None:
        self._entries = tuple(entries)
        if reset:
            self.current_page = 1
        self._clamp()

    def go_to(self, page: Any) -> int:
        try:
            target = int(page)
        except (TypeError, ValueError, OverflowError):
            return self.current_page
        self.current_page = target
        self._clamp()
        return self.current_page

    def first(self) -> int:
        return self.go_to(1)

    def previous(self) -> int:
        return self.go_to(self.current_page - 1)

    def next(self) -> int:
        return self.go_to(self.current_page + 1)

    def last(self) -> int:
        return self.go_to(self.total_pages)

    def page_window(self, size: int = PAGE_WINDOW) -> list[int]:
        """Page numbers to offer as direct links, starting nine before the current page."""

        start = max(1, self.current_page - 9)
        stop = min(self.total_pages, start + size - 1)
        return list(range(start, stop + 1))

    def _clamp(self) -> None:
        self.current_page = max(1, min(self.current_page, self.total_pages))
