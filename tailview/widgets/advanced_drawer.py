from __future__ import annotations

from typing import Optional

from textual.app import ComposeResult
from textual.containers import Container
from textual.message import Message
from textual.widgets import Button, Input, Label, Static, Switch

from ..query import FilterState, parse_days


class _LabelSwitchField(Static):
    """A field composed of a label and a switch widget."""

    def __init__(self, label: str, value: bool, *, switch_id: str) -> None:
        super().__init__(classes="field")
        self._label_text = label
        self._value = value
        self._switch_id = switch_id

    def compose(self) -> ComposeResult:
        yield Label(self._label_text, classes="field-label")
        yield Switch(value=self._value, id=self._switch_id, classes="field-control")


class CleanupDrawer(Static):
    """Server-side cleanup flags sent along with each tail query."""

    DEFAULT_CSS = """
    CleanupDrawer {
        border-top: solid $surface 15%;
        padding: 1 2;
        background: $surface 3%;
        height: auto;
    }

    CleanupDrawer.-hidden {
        display: none;
    }

    CleanupDrawer .drawer-grid {
        layout: horizontal;
        height: auto;
    }

    CleanupDrawer .drawer-grid > * {
        margin: 0 2 1 0;
        width: auto;
        height: auto;
    }

    CleanupDrawer Input {
        border: tall $surface 20%;
        background: $surface 2%;
        width: 16;
        height: 3;
    }

    CleanupDrawer .field {
        layout: vertical;
    }

    CleanupDrawer .field > .field-label {
        height: 1;
    }

    CleanupDrawer .drawer-actions {
        height: auto;
    }
    """

    def __init__(self, filters: FilterState | None = None) -> None:
        super().__init__(id="advanced-drawer")
        self._filters = filters or FilterState()
        self._visible = False
        self.add_class("-hidden")

    def compose(self) -> ComposeResult:
        filters = self._filters
        with Container(classes="drawer-grid"):
            yield _LabelSwitchField("Auto cleanup", filters.auto_cleanup, switch_id="auto-cleanup-toggle")
            yield _LabelSwitchField("Delete DEBUG", filters.delete_debug, switch_id="delete-debug-toggle")
            yield _LabelSwitchField(
                "Delete duplicates", filters.delete_duplicates, switch_id="delete-duplicates-toggle"
            )
            with Container(classes="field"):
                yield Label("Delete older than (days)", classes="field-label")
                days = "" if filters.delete_older_than_days is None else str(filters.delete_older_than_days)
                yield Input(value=days, placeholder="30", id="older-than-input", classes="field-control")
        with Container(classes="drawer-actions"):
            yield Button("Close", id="close-advanced")

    def show(self) -> None:
        self.remove_class("-hidden")
        self._visible = True

    def hide(self) -> None:
        self.add_class("-hidden")
        self._visible = False

    def toggle(self) -> None:
        if self._visible:
            self.hide()
        else:
            self.show()

    @property
    def visible(self) -> bool:
        return self._visible

    def current(self) -> dict:
        older = parse_days(self.query_one("#older-than-input", Input).value)
        return {
            "auto_cleanup": self.query_one("#auto-cleanup-toggle", Switch).value,
            "delete_debug": self.query_one("#delete-debug-toggle", Switch).value,
            "delete_duplicates": self.query_one("#delete-duplicates-toggle", Switch).value,
            "delete_older_than_days": older,
        }

    def _emit(self) -> None:
        values = self.current()
        snapshot = (
            values["auto_cleanup"],
            values["delete_debug"],
            values["delete_duplicates"],
            values["delete_older_than_days"],
        )
        previous = (
            self._filters.auto_cleanup,
            self._filters.delete_debug,
            self._filters.delete_duplicates,
            self._filters.delete_older_than_days,
        )
        if snapshot == previous:
            return
        self._filters = FilterState(**values)
        self.post_message(self.CleanupChanged(**values))

    def on_switch_changed(self, event: Switch.Changed) -> None:  # type: ignore[override]
        event.stop()
        self._emit()

    def on_input_submitted(self, event: Input.Submitted) -> None:  # type: ignore[override]
        event.stop()
        older: Optional[int] = parse_days(event.value)
        event.input.value = "" if older is None else str(older)
        self._emit()

    def on_button_pressed(self, event: Button.Pressed) -> None:  # type: ignore[override]
        if event.button.id == "close-advanced":
            event.stop()
            self.hide()

    class CleanupChanged(Message):
        def __init__(
            self,
            *,
            auto_cleanup: bool,
            delete_debug: bool,
            delete_duplicates: bool,
            delete_older_than_days: Optional[int],
        ) -> None:
            super().__init__()
            self.auto_cleanup = auto_cleanup
            self.delete_debug = delete_debug
            self.delete_duplicates = delete_duplicates
            self.delete_older_than_days = delete_older_than_days

        def as_changes(self) -> dict:
            return {
                "auto_cleanup": self.auto_cleanup,
                "delete_debug": self.delete_debug,
                "delete_duplicates": self.delete_duplicates,
                "delete_older_than_days": self.delete_older_than_days,
            }
