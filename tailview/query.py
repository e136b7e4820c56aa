"""
Query building for the tail view.

Turns the filter selections made in the UI into the canonical request
descriptor sent to the log store. Everything here is pure: bad input is
clamped or dropped, never raised.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .models import Level

ALL = "ALL"
SEARCH_MAX_CHARS = 200
LINES_DEFAULT = 10_000
LINES_MIN = 10
LINES_MAX = 100_000
DEFAULT_TAIL_LEVELS: frozenset[Level] = frozenset({Level.WARNING, Level.ERROR})

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def sanitize_search(raw: Any, limit: int = SEARCH_MAX_CHARS) -> str:
    """Strip control characters, trim, and cap *raw* to *limit* characters."""

    if not isinstance(raw, str):
        return ""
    cleaned = _CONTROL_RE.sub("", raw).strip()
    return cleaned[: max(0, limit)].strip()


def clamp_lines(raw: Any, default: int = LINES_DEFAULT) -> int:
    if isinstance(raw, bool):
        return default
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw.isdigit():
            return default
        raw = int(raw)
    if not isinstance(raw, int) or raw <= 0:
        return default
    return max(LINES_MIN, min(raw, LINES_MAX))


def parse_days(raw: Any) -> Optional[int]:
    """Return a positive day count, or None when *raw* is not one."""

    if isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw.isdigit():
            return None
        raw = int(raw)
    if isinstance(raw, int) and raw > 0:
        return raw
    return None


def _choice(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    if not value or value.upper() == ALL:
        return None
    return value


@dataclass(frozen=True)
class FilterState:
    levels: frozenset[Level] = field(default_factory=lambda: DEFAULT_TAIL_LEVELS)
    category: str = ALL
    function: str = ALL
    search: str = ""
    start_date: str = ""
    end_date: str = ""
    lines: int = LINES_DEFAULT
    distinct: bool = False
    auto_cleanup: bool = False
    delete_debug: bool = False
    delete_duplicates: bool = False
    delete_older_than_days: Optional[int] = None

    def toggle_level(self, level: Level) -> "FilterState":
        levels = set(self.levels)
        if level in levels:
            levels.remove(level)
        else:
            levels.add(level)
        return replace(self, levels=frozenset(levels))

    def cleared(self, *, lines: int = LINES_DEFAULT) -> "FilterState":
        """Reset the filters the user can clear, keeping cleanup preferences."""

        return replace(
            self,
            levels=DEFAULT_TAIL_LEVELS,
            category=ALL,
            function=ALL,
            search="",
            start_date="",
            end_date="",
            lines=clamp_lines(lines),
        )


@dataclass(frozen=True)
class QueryDescriptor:
    lines: int
    levels: Optional[tuple[str, ...]] = None
    category: Optional[str] = None
    function: Optional[str] = None
    search: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    distinct: Optional[bool] = None
    auto_cleanup: Optional[bool] = None
    delete_debug: Optional[bool] = None
    delete_duplicates: Optional[bool] = None
    delete_older_than_days: Optional[int] = None

    _WIRE_NAMES = {
        "lines": "lines",
        "levels": "levels",
        "category": "category",
        "function": "function",
        "search": "search",
        "start_date": "startDate",
        "end_date": "endDate",
        "distinct": "distinct",
        "auto_cleanup": "autoCleanup",
        "delete_debug": "deleteDebug",
        "delete_duplicates": "deleteDuplicates",
        "delete_older_than_days": "deleteOlderThan",
    }

    def to_params(self) -> dict[str, str]:
        """Render the descriptor as query-string parameters, omitting unset keys."""

        params: dict[str, str] = {}
        for attr, wire in self._WIRE_NAMES.items():
            value = getattr(self, attr)
            if value is None:
                continue
            if isinstance(value, bool):
                params[wire] = "true" if value else "false"
            elif isinstance(value, tuple):
                params[wire] = ",".join(value)
            else:
                params[wire] = str(value)
        return params


def build_query(filters: FilterState) -> QueryDescriptor:
    levels: Optional[tuple[str, ...]] = None
    if filters.levels:
        levels = tuple(level.value for level in Level if level in filters.levels)

    search = sanitize_search(filters.search) or None
    return QueryDescriptor(
        lines=clamp_lines(filters.lines),
        levels=levels,
        category=_choice(filters.category),
        function=_choice(filters.function),
        search=search,
        start_date=sanitize_search(filters.start_date, 50) or None,
        end_date=sanitize_search(filters.end_date, 50) or None,
        distinct=True if filters.distinct else None,
        auto_cleanup=True if filters.auto_cleanup else None,
        delete_debug=True if filters.delete_debug else None,
        delete_duplicates=True if filters.delete_duplicates else None,
        delete_older_than_days=parse_days(filters.delete_older_than_days),
    )
