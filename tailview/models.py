from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class Level(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, raw: Any) -> Optional["Level"]:
        """Return the level named by *raw*, or None for anything unrecognized."""

        if isinstance(raw, Level):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


ALL_LEVELS: tuple[Level, ...] = tuple(Level)

SEVERITY_COLORS = {
    Level.CRITICAL: "#ef4444",
    Level.ERROR: "#f87171",
    Level.WARNING: "#facc15",
    Level.INFO: "#22c55e",
    Level.DEBUG: "#a855f7",
}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: Level
    message: str
    id: Optional[int] = None
    category: str = ""
    function: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "LogEntry":
        level = Level.parse(raw.get("level")) or Level.INFO
        return cls(
            timestamp=str(raw.get("timestamp") or ""),
            level=level,
            message=str(raw.get("message") or ""),
            id=_as_int(raw.get("id")),
            category=str(raw.get("category") or ""),
            function=str(raw.get("function") or ""),
        )


@dataclass(frozen=True)
class LogInfo:
    """Source metadata reported by the log store."""

    file_path: str = ""
    size: Optional[int] = None
    total_lines: int = 0
    last_modified: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "LogInfo":
        return cls(
            file_path=str(raw.get("filePath") or ""),
            size=_as_int(raw.get("size")),
            total_lines=_as_int(raw.get("totalLines")) or 0,
            last_modified=str(raw.get("lastModified") or ""),
        )


@dataclass(frozen=True)
class FetchSnapshot:
    """One complete batch returned by the store. Replaced wholesale, never merged."""

    entries: tuple[LogEntry, ...] = ()
    file_path: str = ""
    size: Optional[int] = None
    last_modified: str = ""
    total_lines: int = 0

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any], info: Optional[LogInfo] = None) -> "FetchSnapshot":
        entries = tuple(
            LogEntry.from_dict(item) for item in _as_list(raw.get("logs")) if isinstance(item, Mapping)
        )
        total = _as_int(raw.get("totalLines"))
        return cls(
            entries=entries,
            file_path=str(raw.get("filePath") or (info.file_path if info else "")),
            size=info.size if info else None,
            last_modified=str(raw.get("lastModified") or (info.last_modified if info else "")),
            total_lines=total if total is not None else len(entries),
        )

    def ids(self) -> frozenset[int]:
        return frozenset(entry.id for entry in self.entries if entry.id is not None)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class CategoryCount:
    category: str
    count: int


@dataclass(frozen=True)
class FunctionCount:
    name: str
    count: int


EMPTY_FUNCTION = "(empty)"


@dataclass(frozen=True)
class ChartAggregate:
    time_series: tuple[dict[str, Any], ...] = ()
    by_level: dict[Level, int] = field(default_factory=dict)
    by_category: tuple[CategoryCount, ...] = ()
    category_names: tuple[str, ...] = ()
    by_function: tuple[FunctionCount, ...] = ()
    period: str = "24h"

    @property
    def is_empty(self) -> bool:
        if not self.time_series:
            return True
        return not any(
            bucket.get(name, 0) for bucket in self.time_series for name in self.category_names
        )

    @classmethod
    def empty(cls, period: str = "24h") -> "ChartAggregate":
        return cls(by_level={level: 0 for level in Level}, period=period)

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any], period: str = "24h") -> "ChartAggregate":
        """Parse a chart-data body. Fields of the wrong shape are read as empty."""

        by_category = tuple(
            CategoryCount(normalize_category(item.get("category")), _as_int(item.get("count")) or 0)
            for item in _as_list(raw.get("byCategory"))
            if isinstance(item, Mapping)
        )
        names = raw.get("categoryNames")
        if isinstance(names, list):
            category_names = tuple(normalize_category(name) for name in names)
        else:
            category_names = tuple(item.category for item in by_category)

        series: list[dict[str, Any]] = []
        for bucket in _as_list(raw.get("timeSeries")):
            if not isinstance(bucket, Mapping):
                continue
            row: dict[str, Any] = {"bucket": str(bucket.get("bucket") or "")}
            for name in category_names:
                row[name] = _as_int(bucket.get(name)) or 0
            series.append(row)

        by_level = {level: 0 for level in Level}
        for key, value in _as_mapping(raw.get("byLevel")).items():
            level = Level.parse(key)
            if level is not None:
                by_level[level] = _as_int(value) or 0

        by_function = tuple(
            FunctionCount(normalize_function(item.get("name")), _as_int(item.get("count")) or 0)
            for item in _as_list(raw.get("byFunction"))
            if isinstance(item, Mapping)
        )

        return cls(
            time_series=tuple(series),
            by_level=by_level,
            by_category=by_category,
            category_names=category_names,
            by_function=by_function,
            period=period,
        )


def normalize_category(raw: Any) -> str:
    text = str(raw or "").strip().upper()
    return text or "SYSTEM"


def normalize_function(raw: Any) -> str:
    return str(raw or "").strip() or EMPTY_FUNCTION
