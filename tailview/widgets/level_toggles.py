from __future__ import annotations

from typing import Iterable

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.message import Message
from textual.widgets import Static

from ..models import ALL_LEVELS, SEVERITY_COLORS, Level


class LevelToggles(Static):
    """Row of level pills.

    The widget only reports clicks; the owner decides what a click means and
    pushes the resulting lit set back through ``set_active``.
    """

    DEFAULT_CSS = """
    LevelToggles {
        layout: horizontal;
        height: 3;
        width: auto;
        padding: 1 0 0 0;
    }

    LevelToggles > .level-pill {
        width: auto;
        min-width: 7;
        height: 1;
        padding: 0 1;
        margin-right: 1;
        background: $surface 10%;
        color: $text-muted;
    }

    LevelToggles > .level-pill:focus {
        text-style: underline;
    }

    LevelToggles > .level-pill.-active {
        background: $surface 30%;
        text-style: bold;
    }
    """

    def __init__(self, active: Iterable[Level] = (), *, id: str | None = None) -> None:
        super().__init__(id=id)
        self._active = frozenset(active)
        self._pills: dict[Level, LevelToggles._Pill] = {}

    @property
    def active(self) -> frozenset[Level]:
        return self._active

    def compose(self) -> ComposeResult:
        self._pills.clear()
        for level in ALL_LEVELS:
            pill = self._Pill(self, level)
            self._pills[level] = pill
            yield pill

    def on_mount(self) -> None:
        self._refresh_state()

    def set_active(self, levels: Iterable[Level]) -> None:
        self._active = frozenset(levels)
        self._refresh_state()

    def _refresh_state(self) -> None:
        for level, pill in self._pills.items():
            pill.set_class(level in self._active, "-active")
            pill.refresh()

    def _toggle(self, level: Level) -> None:
        self.post_message(self.Toggled(self, level))

    class _Pill(Static):
        def __init__(self, parent: "LevelToggles", level: Level) -> None:
            super().__init__(classes="level-pill", id=f"level-{level.value.lower()}")
            self._parent = parent
            self.level = level
            self.can_focus = True

        def render(self) -> Text:
            lit = self.level in self._parent.active
            color = SEVERITY_COLORS[self.level] if lit else "#64748b"
            return Text(self.level.value, style=color, justify="center")

        def on_click(self, event: events.Click) -> None:
            self._parent._toggle(self.level)

        def on_key(self, event: events.Key) -> None:
            if event.key in ("enter", "space"):
                self._parent._toggle(self.level)
                event.stop()

    class Toggled(Message):
        def __init__(self, toggles: "LevelToggles", level: Level) -> None:
            super().__init__()
            self.toggles = toggles
            self.level = level

        @property
        def control(self) -> "LevelToggles":
            return self.toggles
