"""
Time-bucketed log charts.

``ChartAggregator`` runs on its own schedule, independent of the tail view:
it re-fetches whenever the period or the level selection changes. Category
visibility is a client-side toggle and never triggers a fetch.

Aggregates come either from the store's chart endpoint (``source="server"``)
or are derived locally from a bounded sample of entries (``source="derived"``).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from .models import (
    ALL_LEVELS,
    SEVERITY_COLORS,
    CategoryCount,
    ChartAggregate,
    FunctionCount,
    Level,
    LogEntry,
    normalize_category,
    normalize_function,
)
from .query import QueryDescriptor
from .services import LogStoreClient, LogStoreError

logger = logging.getLogger(__name__)

CATEGORY_LIMIT = 15
FUNCTION_LIMIT = 10
BAR_WIDTH = 24
SERIES_BAR_WIDTH = 12
NO_DATA_TEXT = "No data for the selected period"
CATEGORY_COLORS = (
    "#38bdf8",
    "#f472b6",
    "#a3e635",
    "#fb923c",
    "#c084fc",
    "#2dd4bf",
    "#fde047",
    "#f87171",
)


@dataclass(frozen=True)
class PeriodSpec:
    bucket: str
    step: timedelta
    buckets: int


PERIODS: dict[str, PeriodSpec] = {
    "1h": PeriodSpec("5min", timedelta(minutes=5), 12),
    "7h": PeriodSpec("hour", timedelta(hours=1), 7),
    "24h": PeriodSpec("hour", timedelta(hours=1), 24),
    "7d": PeriodSpec("day", timedelta(days=1), 7),
}
DEFAULT_PERIOD = "24h"


def resolve_period(period: str) -> str:
    return period if period in PERIODS else DEFAULT_PERIOD


class LevelExclusion:
    """Level selection for the charts.

    With nothing selected every level is shown. The first click on a level
    isolates it by excluding every other level; later clicks toggle single
    levels in and out. Deselecting the last included level shows all again.
    """

    def __init__(self) -> None:
        self.included: frozenset[Level] = frozenset()

    @property
    def explicit(self) -> bool:
        return bool(self.included)

    def is_shown(self, level: Level) -> bool:
        return not self.included or level in self.included

    def click(self, level: Level) -> None:
        if not self.included:
            self.included = frozenset({level})
            return
        if level in self.included:
            included = self.included - {level}
        else:
            included = self.included | {level}
        if included == frozenset(ALL_LEVELS):
            included = frozenset()
        self.included = included

    def levels_param(self) -> tuple[str, ...]:
        return tuple(level.value for level in ALL_LEVELS if level in self.included)


def _parse_timestamp(raw: str) -> Optional[datetime]:
    if not raw:
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def bucket_floor(moment: datetime, bucket: str) -> datetime:
    if bucket == "day":
        return moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if bucket == "hour":
        return moment.replace(minute=0, second=0, microsecond=0)
    return moment.replace(minute=moment.minute - moment.minute % 5, second=0, microsecond=0)


def bucket_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def bucket_starts(period: str, now: Optional[datetime] = None) -> list[datetime]:
    spec = PERIODS[resolve_period(period)]
    current = now or datetime.now(timezone.utc)
    last = bucket_floor(current.astimezone(timezone.utc), spec.bucket)
    return [last - spec.step * offset for offset in range(spec.buckets - 1, -1, -1)]


def aggregate_entries(
    entries: Iterable[LogEntry],
    period: str,
    levels: Iterable[Level] = (),
    now: Optional[datetime] = None,
) -> ChartAggregate:
    """Bucket *entries* for *period* the same way the store's chart endpoint does."""

    period = resolve_period(period)
    spec = PERIODS[period]
    current = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    starts = bucket_starts(period, current)
    keys = {bucket_key(start) for start in starts}
    wanted = frozenset(levels)

    by_level = {level: 0 for level in ALL_LEVELS}
    per_bucket: dict[str, dict[str, int]] = {}
    category_totals: dict[str, int] = {}
    function_totals: dict[str, int] = {}
    for entry in entries:
        if wanted and entry.level not in wanted:
            continue
        moment = _parse_timestamp(entry.timestamp)
        if moment is None or moment > current:
            continue
        key = bucket_key(bucket_floor(moment, spec.bucket))
        if key not in keys:
            continue
        category = normalize_category(entry.category)
        by_level[entry.level] += 1
        category_totals[category] = category_totals.get(category, 0) + 1
        function = normalize_function(entry.function)
        function_totals[function] = function_totals.get(function, 0) + 1
        counts = per_bucket.setdefault(key, {})
        counts[category] = counts.get(category, 0) + 1

    ranked = sorted(category_totals.items(), key=lambda item: (-item[1], item[0]))[:CATEGORY_LIMIT]
    names = tuple(name for name, _ in ranked)
    top_functions = sorted(function_totals.items(), key=lambda item: (-item[1], item[0]))[:FUNCTION_LIMIT]
    series = []
    for start in starts:
        key = bucket_key(start)
        counts = per_bucket.get(key, {})
        row: dict[str, object] = {"bucket": key}
        for name in names:
            row[name] = counts.get(name, 0)
        series.append(row)

    return ChartAggregate(
        time_series=tuple(series),
        by_level=by_level,
        by_category=tuple(CategoryCount(name, count) for name, count in ranked),
        category_names=names,
        by_function=tuple(FunctionCount(name, count) for name, count in top_functions),
        period=period,
    )


class ChartAggregator:
    def __init__(
        self,
        client: LogStoreClient,
        *,
        period: str = DEFAULT_PERIOD,
        source: str = "server",
        sample_lines: int = 10_000,
    ) -> None:
        self._client = client
        self.period = resolve_period(period)
        self.source = source
        self.sample_lines = sample_lines
        self.levels = LevelExclusion()
        self.hidden_categories: set[str] = set()
        self.aggregate = ChartAggregate.empty(self.period)
        self.loading = False
        self.error: Optional[str] = None
        self._generation = 0

    def set_period(self, period: str) -> bool:
        period = resolve_period(period)
        if period == self.period:
            return False
        self.period = period
        return True

    def toggle_level(self, level: Level) -> None:
        self.levels.click(level)

    def toggle_category(self, name: str) -> None:
        if name in self.hidden_categories:
            self.hidden_categories.discard(name)
        else:
            self.hidden_categories.add(name)

    @property
    def visible_categories(self) -> tuple[str, ...]:
        return tuple(
            name for name in self.aggregate.category_names if name not in self.hidden_categories
        )

    def y_max(self) -> int:
        return series_max(self.aggregate, self.visible_categories)

    async def refresh(self) -> ChartAggregate:
        self._generation += 1
        generation = self._generation
        period = self.period
        levels = self.levels.levels_param()
        self.loading = True
        try:
            if self.source == "derived":
                aggregate = await self._derive(period, levels)
            else:
                aggregate = await self._client.get_chart_data(period, levels)
        except LogStoreError as exc:
            if generation == self._generation:
                logger.warning("Chart refresh failed: %s", exc.message)
                self.error = exc.message
                self.loading = False
            return self.aggregate
        if generation != self._generation:
            logger.debug("Discarding stale chart result for %s", period)
            return self.aggregate
        self.aggregate = aggregate
        self.error = None
        self.loading = False
        return aggregate

    async def _derive(self, period: str, levels: tuple[str, ...]) -> ChartAggregate:
        now = datetime.now(timezone.utc)
        start = bucket_starts(period, now)[0]
        query = QueryDescriptor(
            lines=self.sample_lines,
            levels=levels or None,
            start_date=start.strftime("%Y-%m-%dT%H:%M:%SZ"),
        )
        snapshot = await self._client.get_logs(query)
        wanted = [level for level in ALL_LEVELS if level.value in levels]
        return aggregate_entries(snapshot.entries, period, wanted, now=now)


def series_max(aggregate: ChartAggregate, categories: Iterable[str]) -> int:
    names = tuple(categories)
    peak = 0
    for bucket in aggregate.time_series:
        for name in names:
            value = bucket.get(name, 0)
            if isinstance(value, int) and value > peak:
                peak = value
    return max(1, peak)


def category_color(name: str, names: tuple[str, ...]) -> str:
    index = names.index(name) if name in names else len(names)
    return CATEGORY_COLORS[index % len(CATEGORY_COLORS)]


def _bar(value: int, scale: int, width: int, color: str) -> Text:
    filled = round(value / scale * width) if scale else 0
    if value > 0 and filled == 0:
        filled = 1
    bar = Text("█" * filled, style=color)
    bar.append("·" * (width - filled), style="#334155")
    return bar


def _bucket_label(raw: str, period: str) -> str:
    moment = _parse_timestamp(raw)
    if moment is None:
        return raw
    if period == "7d":
        return moment.strftime("%b %d")
    return moment.strftime("%H:%M")


def render_time_series(aggregate: ChartAggregate, visible: tuple[str, ...]) -> RenderableType:
    if aggregate.is_empty or not visible:
        return Text(NO_DATA_TEXT, style="italic #94a3b8")
    scale = series_max(aggregate, visible)
    table = Table(box=None, show_edge=False, pad_edge=False, expand=False)
    table.add_column("Bucket", style="#94a3b8", no_wrap=True)
    for name in visible:
        table.add_column(name, no_wrap=True, header_style=category_color(name, aggregate.category_names))
    for bucket in aggregate.time_series:
        cells: list[RenderableType] = [_bucket_label(str(bucket.get("bucket", "")), aggregate.period)]
        for name in visible:
            value = int(bucket.get(name, 0) or 0)
            cell = _bar(value, scale, SERIES_BAR_WIDTH, category_color(name, aggregate.category_names))
            cell.append(f" {value}")
            cells.append(cell)
        table.add_row(*cells)
    return Group(Text(f"y max: {scale}", style="#94a3b8"), table)


def render_level_bars(aggregate: ChartAggregate, levels: LevelExclusion) -> RenderableType:
    shown = [level for level in ALL_LEVELS if levels.is_shown(level)]
    scale = max(1, max((aggregate.by_level.get(level, 0) for level in shown), default=0))
    table = Table(box=None, show_header=False, show_edge=False, pad_edge=False)
    table.add_column("Level", no_wrap=True)
    table.add_column("Count", no_wrap=True)
    for level in shown:
        count = aggregate.by_level.get(level, 0)
        bar = _bar(count, scale, BAR_WIDTH, SEVERITY_COLORS[level])
        bar.append(f" {count}")
        table.add_row(Text(level.value, style=SEVERITY_COLORS[level]), bar)
    return table


def render_category_bars(aggregate: ChartAggregate) -> RenderableType:
    if not aggregate.by_category:
        return Text(NO_DATA_TEXT, style="italic #94a3b8")
    scale = max(1, max(item.count for item in aggregate.by_category))
    table = Table(box=None, show_header=False, show_edge=False, pad_edge=False)
    table.add_column("Category", no_wrap=True)
    table.add_column("Count", no_wrap=True)
    for item in aggregate.by_category:
        color = category_color(item.category, aggregate.category_names)
        bar = _bar(item.count, scale, BAR_WIDTH, color)
        bar.append(f" {item.count}")
        table.add_row(Text(item.category, style=color), bar)
    return table


def render_function_bars(aggregate: ChartAggregate) -> RenderableType:
    if not aggregate.by_function:
        return Text(NO_DATA_TEXT, style="italic #94a3b8")
    scale = max(1, max(item.count for item in aggregate.by_function))
    table = Table(box=None, show_header=False, show_edge=False, pad_edge=False)
    table.add_column("Function", no_wrap=True, style="#cbd5f5")
    table.add_column("Count", no_wrap=True)
    for item in aggregate.by_function:
        bar = _bar(item.count, scale, BAR_WIDTH, "#38bdf8")
        bar.append(f" {item.count}")
        table.add_row(item.name, bar)
    return table
