from __future__ import annotations

import asyncio
from typing import Optional

from tailview.models import ChartAggregate, FetchSnapshot, Level, LogEntry, LogInfo
from tailview.query import QueryDescriptor


def make_entries(ids, *, level: Level = Level.ERROR, timestamp: str = "2024-05-01T12:00:00Z"):
    return tuple(
        LogEntry(timestamp=timestamp, level=level, message=f"message {i}", id=i, category="db", function="sync")
        for i in ids
    )


def make_snapshot(ids, **kwargs) -> FetchSnapshot:
    entries = make_entries(ids, **kwargs)
    return FetchSnapshot(entries=entries, file_path="/var/log/app.log", total_lines=len(entries))


class FakeLogStore:
    """In-memory stand-in for LogStoreClient.

    ``batches`` are served in order; the last one repeats. An exception in the
    list is raised instead of returned. Setting ``gate`` holds every
    ``get_logs`` call until the event is set.
    """

    def __init__(self, batches=None, *, info: Optional[LogInfo] = None) -> None:
        self.batches = list(batches or [FetchSnapshot()])
        self.info = info or LogInfo(file_path="/var/log/app.log", size=2048, total_lines=130, last_modified="")
        self.gate: Optional[asyncio.Event] = None
        self.queries: list[QueryDescriptor] = []
        self.chart_calls: list[tuple[str, tuple[str, ...]]] = []
        self.chart = ChartAggregate.empty()
        self.chart_error: Optional[Exception] = None
        self.clear_error: Optional[Exception] = None
        self.cleared = 0
        self.categories = ["db", "api"]
        self.functions = ["sync"]

    async def get_logs(self, query: QueryDescriptor) -> FetchSnapshot:
        self.queries.append(query)
        if self.gate is not None:
            await self.gate.wait()
        item = self.batches.pop(0) if len(self.batches) > 1 else self.batches[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def get_log_info(self) -> LogInfo:
        return self.info

    async def get_chart_data(self, period: str, levels: tuple[str, ...] = ()) -> ChartAggregate:
        self.chart_calls.append((period, levels))
        if self.chart_error is not None:
            raise self.chart_error
        return self.chart

    async def get_categories(self) -> list[str]:
        return list(self.categories)

    async def get_functions(self) -> list[str]:
        return list(self.functions)

    async def clear_logs(self) -> None:
        if self.clear_error is not None:
            raise self.clear_error
        self.cleared += 1

    async def aclose(self) -> None:
        return None
