from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from textual.app import ComposeResult
from textual.containers import Container
from textual.message import Message
from textual.timer import Timer
from textual.widget import Widget
from textual.widgets import Button, Input, Label, Select, Static, Switch

from ..query import ALL, FilterState, clamp_lines, sanitize_search
from .level_toggles import LevelToggles

SEARCH_DEBOUNCE_SECONDS = 0.4
ACTION_IDS = (
    "refresh-now",
    "clear-filters",
    "copy-logs",
    "clear-logs",
    "go-latest",
    "scroll-bottom",
    "toggle-advanced",
)


class LabeledField(Static):
    """Utility container with label above control."""

    DEFAULT_CSS = """
    LabeledField {
        layout: vertical;
        width: 1fr;
        height: auto;
        min-width: 14;
        margin-right: 1;
    }

    LabeledField > .field-label {
        color: $text-muted;
        height: 1;
    }

    LabeledField > .field-control {
        height: auto;
        min-height: 3;
        width: 1fr;
    }
    """

    def __init__(self, label: str, control: Widget, *, id: str | None = None) -> None:
        super().__init__(id=id)
        self._label = Label(label, classes="field-label")
        self._control_wrapper = Container(control, classes="field-control")

    def compose(self) -> ComposeResult:
        yield self._label
        yield self._control_wrapper


def _options(names: Iterable[str]) -> list[tuple[str, str]]:
    seen: list[str] = []
    for name in names:
        cleaned = name.strip()
        if cleaned and cleaned != ALL and cleaned not in seen:
            seen.append(cleaned)
    return [(ALL, ALL)] + [(name, name) for name in seen]


class FilterBar(Container):
    """Top band holding every tail filter plus the tail actions.

    ``filters`` is the bar's view of the current selection. Any control edit
    that changes it posts ``FiltersChanged``; programmatic updates through
    ``apply_filters`` do not.
    """

    DEFAULT_CSS = """
    FilterBar {
        layout: vertical;
        padding: 0 2;
        background: $surface 5%;
        border-bottom: solid $surface 25%;
        height: auto;
    }

    FilterBar > .row {
        layout: horizontal;
        height: auto;
        width: 1fr;
    }

    FilterBar Input {
        border: tall $surface 25%;
        background: $surface 8%;
        height: 3;
        width: 1fr;
    }

    FilterBar #levels-field,
    FilterBar #auto-refresh-field,
    FilterBar #distinct-field {
        width: auto;
    }

    FilterBar #levels-field .field-control,
    FilterBar #auto-refresh-field .field-control,
    FilterBar #distinct-field .field-control {
        width: auto;
    }

    FilterBar #countdown-label {
        width: auto;
        padding: 1 1 0 1;
        color: $text-muted;
    }

    FilterBar #actions-row {
        padding: 0 0 1 0;
    }

    FilterBar #actions-row Button {
        margin-right: 1;
        height: 3;
        min-width: 8;
    }
    """

    def __init__(self, filters: FilterState | None = None, *, auto_refresh: bool = True) -> None:
        super().__init__(id="filter-bar")
        self.filters = filters or FilterState()
        self._auto_refresh = auto_refresh
        self._category_names: list[str] = []
        self._function_names: list[str] = []
        self._search_timer: Timer | None = None
        self.level_toggles = LevelToggles(self.filters.levels, id="tail-levels")

    def compose(self) -> ComposeResult:
        filters = self.filters
        with Container(id="filter-row", classes="row"):
            yield LabeledField(
                "Search",
                Input(value=filters.search, placeholder="message text", id="search-input"),
                id="search-field",
            )
            yield LabeledField("Levels", self.level_toggles, id="levels-field")
            yield LabeledField(
                "Category",
                Select(_options([]), allow_blank=False, value=ALL, id="category-select"),
                id="category-field",
            )
            yield LabeledField(
                "Function",
                Select(_options([]), allow_blank=False, value=ALL, id="function-select"),
                id="function-field",
            )
        with Container(id="range-row", classes="row"):
            yield LabeledField(
                "Lines",
                Input(value=str(filters.lines), placeholder="10000", id="lines-input"),
                id="lines-field",
            )
            yield LabeledField(
                "Start",
                Input(value=filters.start_date, placeholder="2024-01-01T00:00", id="start-input"),
                id="start-field",
            )
            yield LabeledField(
                "End",
                Input(value=filters.end_date, placeholder="2024-01-01T23:59", id="end-input"),
                id="end-field",
            )
            yield LabeledField(
                "Auto-refresh",
                Switch(value=self._auto_refresh, id="auto-refresh-toggle"),
                id="auto-refresh-field",
            )
            yield Label("", id="countdown-label")
            yield LabeledField(
                "Distinct",
                Switch(value=filters.distinct, id="distinct-toggle"),
                id="distinct-field",
            )
        with Container(id="actions-row", classes="row"):
            yield Button("Refresh Now", id="refresh-now", variant="primary")
            yield Button("Clear Filters", id="clear-filters")
            yield Button("Copy Logs", id="copy-logs", variant="success")
            yield Button("Clear Logs", id="clear-logs", variant="error")
            yield Button("Go to Latest", id="go-latest")
            yield Button("Scroll to Bottom", id="scroll-bottom")
            yield Button("Advanced", id="toggle-advanced", variant="warning")

    # ------------------------------------------------------------------ updates from the app

    def apply_filters(self, filters: FilterState) -> None:
        """Reflect *filters* in the controls without reporting a change."""

        self.filters = filters
        self.level_toggles.set_active(filters.levels)
        with self.prevent(Input.Changed, Select.Changed, Switch.Changed):
            self.query_one("#search-input", Input).value = filters.search
            self.query_one("#lines-input", Input).value = str(filters.lines)
            self.query_one("#start-input", Input).value = filters.start_date
            self.query_one("#end-input", Input).value = filters.end_date
            self.query_one("#distinct-toggle", Switch).value = filters.distinct
            self._select_value("#category-select", filters.category, self._category_names)
            self._select_value("#function-select", filters.function, self._function_names)

    def set_category_options(self, names: Iterable[str]) -> None:
        options = _options(names)
        self._category_names = [value for _, value in options[1:]]
        with self.prevent(Select.Changed):
            self.query_one("#category-select", Select).set_options(options)
            self._select_value("#category-select", self.filters.category, self._category_names)

    def set_function_options(self, names: Iterable[str]) -> None:
        options = _options(names)
        self._function_names = [value for _, value in options[1:]]
        with self.prevent(Select.Changed):
            self.query_one("#function-select", Select).set_options(options)
            self._select_value("#function-select", self.filters.function, self._function_names)

    def set_countdown(self, seconds: int, *, enabled: bool, loading: bool = False) -> None:
        if loading:
            text = "Refreshing…"
        elif enabled:
            text = f"Next refresh in {seconds}s"
        else:
            text = "Auto-refresh off"
        self.query_one("#countdown-label", Label).update(text)

    def set_auto_refresh(self, value: bool) -> None:
        self._auto_refresh = value
        with self.prevent(Switch.Changed):
            self.query_one("#auto-refresh-toggle", Switch).value = value

    def _select_value(self, selector: str, value: str, names: list[str]) -> None:
        select = self.query_one(selector, Select)
        select.value = value if value in names else ALL

    # ------------------------------------------------------------------ control events

    def _commit(self, filters: FilterState) -> None:
        if filters == self.filters:
            return
        self.filters = filters
        self.post_message(self.FiltersChanged(filters))

    def _commit_search(self) -> None:
        self._search_timer = None
        raw = self.query_one("#search-input", Input).value
        self._commit(replace(self.filters, search=sanitize_search(raw)))

    def on_input_changed(self, event: Input.Changed) -> None:  # type: ignore[override]
        if event.input.id != "search-input":
            return
        event.stop()
        if self._search_timer is not None:
            self._search_timer.stop()
        self._search_timer = self.set_timer(SEARCH_DEBOUNCE_SECONDS, self._commit_search)

    def on_input_submitted(self, event: Input.Submitted) -> None:  # type: ignore[override]
        event.stop()
        input_id = event.input.id
        if input_id == "search-input":
            if self._search_timer is not None:
                self._search_timer.stop()
            self._commit_search()
        elif input_id == "lines-input":
            lines = clamp_lines(event.value, self.filters.lines)
            event.input.value = str(lines)
            self._commit(replace(self.filters, lines=lines))
        elif input_id == "start-input":
            self._commit(replace(self.filters, start_date=sanitize_search(event.value, 50)))
        elif input_id == "end-input":
            self._commit(replace(self.filters, end_date=sanitize_search(event.value, 50)))

    def on_select_changed(self, event: Select.Changed) -> None:  # type: ignore[override]
        event.stop()
        value = event.value if isinstance(event.value, str) else ALL
        if event.select.id == "category-select":
            self._commit(replace(self.filters, category=value))
        elif event.select.id == "function-select":
            self._commit(replace(self.filters, function=value))

    def on_switch_changed(self, event: Switch.Changed) -> None:  # type: ignore[override]
        event.stop()
        if event.switch.id == "distinct-toggle":
            self._commit(replace(self.filters, distinct=event.value))
        elif event.switch.id == "auto-refresh-toggle":
            if event.value != self._auto_refresh:
                self._auto_refresh = event.value
                self.post_message(self.AutoRefreshToggled(event.value))

    def on_level_toggles_toggled(self, event: LevelToggles.Toggled) -> None:
        event.stop()
        filters = self.filters.toggle_level(event.level)
        self.level_toggles.set_active(filters.levels)
        self._commit(filters)

    def on_button_pressed(self, event: Button.Pressed) -> None:  # type: ignore[override]
        if event.button.id in ACTION_IDS:
            event.stop()
            self.post_message(self.ActionTriggered(event.button.id))

    class FiltersChanged(Message):
        def __init__(self, filters: FilterState) -> None:
            super().__init__()
            self.filters = filters

    class AutoRefreshToggled(Message):
        def __init__(self, value: bool) -> None:
            super().__init__()
            self.value = value

    class ActionTriggered(Message):
        def __init__(self, action_id: str) -> None:
            super().__init__()
            self.action_id = action_id
