import asyncio
from datetime import datetime, timedelta, timezone

from rich.text import Text

from tailview.charts import (
    NO_DATA_TEXT,
    ChartAggregator,
    LevelExclusion,
    aggregate_entries,
    render_function_bars,
    render_time_series,
    series_max,
)
from tailview.models import (
    ALL_LEVELS,
    CategoryCount,
    ChartAggregate,
    FetchSnapshot,
    FunctionCount,
    Level,
    LogEntry,
)
from tailview.services import LogStoreError

from fakes import FakeLogStore

NOW = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def _entry(
    minutes_ago: float, level: Level = Level.ERROR, category: str = "db", function: str = ""
) -> LogEntry:
    stamp = (NOW - timedelta(minutes=minutes_ago)).strftime("%Y-%m-%dT%H:%M:%SZ")
    return LogEntry(timestamp=stamp, level=level, message="m", category=category, function=function)


def test_first_click_isolates_level() -> None:
    levels = LevelExclusion()
    assert all(levels.is_shown(level) for level in ALL_LEVELS)
    assert levels.levels_param() == ()

    levels.click(Level.ERROR)

    assert levels.is_shown(Level.ERROR)
    assert not any(levels.is_shown(level) for level in ALL_LEVELS if level is not Level.ERROR)
    assert levels.levels_param() == ("ERROR",)


def test_later_clicks_toggle_single_levels() -> None:
    levels = LevelExclusion()
    levels.click(Level.ERROR)

    levels.click(Level.WARNING)
    assert levels.levels_param() == ("WARNING", "ERROR")

    levels.click(Level.ERROR)
    assert levels.levels_param() == ("WARNING",)

    levels.click(Level.WARNING)
    assert levels.levels_param() == ()
    assert all(levels.is_shown(level) for level in ALL_LEVELS)


def test_including_every_level_returns_to_no_filter() -> None:
    levels = LevelExclusion()
    for level in ALL_LEVELS:
        levels.click(level)

    assert levels.levels_param() == ()
    assert not levels.explicit


def test_aggregate_counts_are_consistent() -> None:
    entries = [
        _entry(5),
        _entry(65, Level.INFO, "api"),
        _entry(70, Level.WARNING, ""),
        _entry(23 * 60, Level.DEBUG, "db"),
        _entry(3 * 24 * 60),
        _entry(-30),
        LogEntry(timestamp="not a time", level=Level.ERROR, message="m"),
    ]

    aggregate = aggregate_entries(entries, "24h", now=NOW)

    assert len(aggregate.time_series) == 24
    assert aggregate.time_series[-1]["bucket"] == "2024-05-01T12:00:00Z"
    assert sum(aggregate.by_level.values()) == 4
    for item in aggregate.by_category:
        assert sum(bucket[item.category] for bucket in aggregate.time_series) == item.count
    assert {item.category for item in aggregate.by_category} == {"DB", "API", "SYSTEM"}


def test_period_bucket_layouts() -> None:
    one_hour = aggregate_entries([], "1h", now=NOW)
    assert len(one_hour.time_series) == 12
    assert one_hour.time_series[0]["bucket"] == "2024-05-01T11:35:00Z"

    seven_hours = aggregate_entries([], "7h", now=NOW)
    assert len(seven_hours.time_series) == 7

    seven_days = aggregate_entries([], "7d", now=NOW)
    assert [bucket["bucket"] for bucket in seven_days.time_series][-2:] == [
        "2024-04-30T00:00:00Z",
        "2024-05-01T00:00:00Z",
    ]

    fallback = aggregate_entries([], "fortnight", now=NOW)
    assert fallback.period == "24h"
    assert len(fallback.time_series) == 24


def test_aggregate_respects_level_selection() -> None:
    entries = [_entry(1), _entry(2, Level.INFO), _entry(3, Level.INFO)]

    aggregate = aggregate_entries(entries, "1h", [Level.INFO], now=NOW)

    assert aggregate.by_level[Level.INFO] == 2
    assert aggregate.by_level[Level.ERROR] == 0


def test_empty_period_renders_no_data_state() -> None:
    aggregate = aggregate_entries([], "24h", now=NOW)

    assert aggregate.is_empty
    assert series_max(aggregate, aggregate.category_names) == 1
    rendered = render_time_series(aggregate, aggregate.category_names)
    assert isinstance(rendered, Text)
    assert rendered.plain == NO_DATA_TEXT


def test_y_scale_uses_visible_series_only() -> None:
    aggregate = ChartAggregate(
        time_series=({"bucket": "b1", "DB": 3, "API": 40}, {"bucket": "b2", "DB": 7, "API": 0}),
        by_category=(CategoryCount("API", 40), CategoryCount("DB", 10)),
        category_names=("API", "DB"),
    )

    assert series_max(aggregate, ("API", "DB")) == 40
    assert series_max(aggregate, ("DB",)) == 7


def test_aggregator_refetches_on_period_and_level_change() -> None:
    async def _exercise() -> None:
        store = FakeLogStore()
        aggregator = ChartAggregator(store, period="24h")
        await aggregator.refresh()

        assert aggregator.set_period("24h") is False
        assert aggregator.set_period("1h") is True
        aggregator.toggle_level(Level.ERROR)
        await aggregator.refresh()

        assert store.chart_calls == [("24h", ()), ("1h", ("ERROR",))]

    asyncio.run(_exercise())


def test_category_toggle_is_client_side() -> None:
    async def _exercise() -> None:
        store = FakeLogStore()
        store.chart = ChartAggregate(
            time_series=({"bucket": "b1", "DB": 3, "API": 1},),
            by_category=(CategoryCount("DB", 3), CategoryCount("API", 1)),
            category_names=("DB", "API"),
        )
        aggregator = ChartAggregator(store)
        await aggregator.refresh()

        aggregator.toggle_category("DB")
        assert aggregator.visible_categories == ("API",)
        assert aggregator.y_max() == 1
        aggregator.toggle_category("DB")
        assert aggregator.visible_categories == ("DB", "API")
        assert len(store.chart_calls) == 1

    asyncio.run(_exercise())


def test_aggregator_failure_keeps_last_aggregate() -> None:
    async def _exercise() -> None:
        store = FakeLogStore()
        store.chart = ChartAggregate(
            time_series=({"bucket": "b1", "DB": 2},),
            by_category=(CategoryCount("DB", 2),),
            category_names=("DB",),
        )
        aggregator = ChartAggregator(store)
        first = await aggregator.refresh()

        store.chart_error = LogStoreError("chart backend down")
        second = await aggregator.refresh()

        assert second is first
        assert aggregator.error == "chart backend down"
        assert aggregator.loading is False

    asyncio.run(_exercise())


def test_derived_source_buckets_sampled_entries() -> None:
    async def _exercise() -> None:
        now = datetime.now(timezone.utc)
        entries = tuple(
            LogEntry(
                timestamp=(now - timedelta(minutes=minutes)).strftime("%Y-%m-%dT%H:%M:%SZ"),
                level=Level.WARNING,
                message="m",
                category="db",
            )
            for minutes in (1, 2, 3)
        )
        store = FakeLogStore([FetchSnapshot(entries=entries)])
        aggregator = ChartAggregator(store, period="1h", source="derived", sample_lines=500)

        aggregate = await aggregator.refresh()

        assert store.chart_calls == []
        assert store.queries[0].lines == 500
        assert store.queries[0].start_date is not None
        assert sum(aggregate.by_level.values()) == 3
        assert aggregate.by_category == (CategoryCount("DB", 3),)

    asyncio.run(_exercise())


def test_top_functions_are_ranked_and_capped() -> None:
    entries = [_entry(1, function="sync")] * 3 + [_entry(2, function="  ")] * 2
    entries += [_entry(3, function=f"job_{index:02d}") for index in range(12)]
    entries.append(_entry(90 * 60, function="too_old"))

    aggregate = aggregate_entries(entries, "1h", now=NOW)

    assert len(aggregate.by_function) == 10
    assert aggregate.by_function[:2] == (FunctionCount("sync", 3), FunctionCount("(empty)", 2))
    assert aggregate.by_function[2] == FunctionCount("job_00", 1)
    assert all(item.name != "too_old" for item in aggregate.by_function)

    rendered = render_function_bars(aggregate)
    assert not isinstance(rendered, Text)
    assert render_function_bars(ChartAggregate.empty()).plain == NO_DATA_TEXT


def test_chart_payload_reads_functions_and_tolerates_bad_shapes() -> None:
    aggregate = ChartAggregate.from_payload(
        {
            "timeSeries": [{"bucket": "2024-05-01T12:00:00Z", "DB": 4}],
            "categoryNames": ["DB"],
            "byFunction": [{"name": "sync", "count": "4"}, {"name": "", "count": 1}, "junk"],
        },
        period="24h",
    )
    assert aggregate.by_function == (FunctionCount("sync", 4), FunctionCount("(empty)", 1))

    malformed = ChartAggregate.from_payload(
        {"timeSeries": "soon", "byLevel": ["ERROR"], "byCategory": {"DB": 2}, "byFunction": 5},
        period="7d",
    )
    assert malformed.is_empty
    assert malformed.by_level == {level: 0 for level in ALL_LEVELS}
    assert malformed.by_category == ()
    assert malformed.by_function == ()
    assert malformed.period == "7d"
