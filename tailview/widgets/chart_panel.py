from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, VerticalScroll
from textual.message import Message
from textual.widgets import Button, Label, Static

from ..charts import (
    PERIODS,
    ChartAggregator,
    category_color,
    render_category_bars,
    render_function_bars,
    render_level_bars,
    render_time_series,
)
from ..models import ALL_LEVELS
from .level_toggles import LevelToggles
from .segmented import SegmentedButtons

PERIOD_LABELS = {"1h": "1 hour", "7h": "7 hours", "24h": "24 hours", "7d": "7 days"}


class ChartPanel(Container):
    """Charts tab: period selector, level filter, legend and the four charts."""

    DEFAULT_CSS = """
    ChartPanel {
        layout: vertical;
        height: 1fr;
        padding: 0 2;
    }

    ChartPanel #chart-controls {
        layout: horizontal;
        height: auto;
    }

    ChartPanel #chart-status {
        height: 1;
        color: $text-muted;
    }

    ChartPanel #chart-legend {
        layout: horizontal;
        height: auto;
    }

    ChartPanel #chart-legend Button {
        min-width: 6;
        margin-right: 1;
    }

    ChartPanel #chart-legend Button.-hidden-series {
        opacity: 50%;
    }

    ChartPanel .chart-title {
        text-style: bold;
        padding-top: 1;
    }
    """

    def __init__(self, aggregator: ChartAggregator) -> None:
        super().__init__(id="chart-panel")
        self.aggregator = aggregator
        self._legend: dict[str, str] = {}
        self.periods = SegmentedButtons(
            [(key, PERIOD_LABELS.get(key, key)) for key in PERIODS],
            value=aggregator.period,
            id="chart-periods",
        )
        self.level_toggles = LevelToggles(ALL_LEVELS, id="chart-levels")

    def compose(self) -> ComposeResult:
        with Horizontal(id="chart-controls"):
            yield self.periods
            yield self.level_toggles
        yield Label("", id="chart-status")
        yield Horizontal(id="chart-legend")
        with VerticalScroll(id="chart-body"):
            yield Label("Entries over time", classes="chart-title")
            yield Static("", id="chart-series")
            yield Label("By level", classes="chart-title")
            yield Static("", id="chart-levels-bars")
            yield Label("By category", classes="chart-title")
            yield Static("", id="chart-categories")
            yield Label("Top functions", classes="chart-title")
            yield Static("", id="chart-functions")

    def on_mount(self) -> None:
        self.reload()

    def reload(self) -> None:
        self.query_one("#chart-status", Label).update("Loading chart data…")
        self.run_worker(self._load(), group="chart", exclusive=True, exit_on_error=False)

    async def _load(self) -> None:
        await self.aggregator.refresh()
        if not self.is_attached:
            return
        await self._render_legend()
        self.render_charts()

    def render_charts(self) -> None:
        aggregator = self.aggregator
        aggregate = aggregator.aggregate
        self.level_toggles.set_active(
            level for level in ALL_LEVELS if aggregator.levels.is_shown(level)
        )
        if aggregator.error:
            status = Text(f"Chart data unavailable: {aggregator.error}", style="#f87171")
        else:
            status = Text(
                f"Period {PERIOD_LABELS.get(aggregate.period, aggregate.period)}"
                f" · y max {aggregator.y_max()}"
            )
        self.query_one("#chart-status", Label).update(status)
        self.query_one("#chart-series", Static).update(
            render_time_series(aggregate, aggregator.visible_categories)
        )
        self.query_one("#chart-levels-bars", Static).update(render_level_bars(aggregate, aggregator.levels))
        self.query_one("#chart-categories", Static).update(render_category_bars(aggregate))
        self.query_one("#chart-functions", Static).update(render_function_bars(aggregate))
        for button_id, name in self._legend.items():
            button = self.query_one(f"#{button_id}", Button)
            button.set_class(name in aggregator.hidden_categories, "-hidden-series")
            button.label = self._legend_label(name)

    async def _render_legend(self) -> None:
        legend = self.query_one("#chart-legend", Horizontal)
        await legend.remove_children()
        self._legend = {}
        buttons = []
        for index, name in enumerate(self.aggregator.aggregate.category_names):
            button_id = f"legend-{index}"
            self._legend[button_id] = name
            buttons.append(Button(self._legend_label(name), id=button_id))
        if buttons:
            await legend.mount(*buttons)

    def _legend_label(self, name: str) -> Text:
        names = self.aggregator.aggregate.category_names
        style = category_color(name, names)
        if name in self.aggregator.hidden_categories:
            style = f"strike {style}"
        return Text(name, style=style)

    def on_segmented_buttons_value_changed(self, event: SegmentedButtons.ValueChanged) -> None:
        event.stop()
        if self.aggregator.set_period(event.value):
            self.post_message(self.PeriodChanged(self.aggregator.period))
            self.reload()

    def on_level_toggles_toggled(self, event: LevelToggles.Toggled) -> None:
        event.stop()
        self.aggregator.toggle_level(event.level)
        self.level_toggles.set_active(
            level for level in ALL_LEVELS if self.aggregator.levels.is_shown(level)
        )
        self.reload()

    def on_button_pressed(self, event: Button.Pressed) -> None:  # type: ignore[override]
        name = self._legend.get(event.button.id or "")
        if name is None:
            return
        event.stop()
        self.aggregator.toggle_category(name)
        self.render_charts()

    class PeriodChanged(Message):
        def __init__(self, period: str) -> None:
            super().__init__()
            self.period = period
