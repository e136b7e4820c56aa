from __future__ import annotations

from textual import events
from textual.app import ComposeResult
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static


class ConfirmClearDialog(ModalScreen[bool]):
    """Ask before truncating the log store. Dismisses with True only on confirm."""

    DEFAULT_CSS = """
    ConfirmClearDialog {
        align: center middle;
        background: rgba(0, 0, 0, 0.6);
    }

    #confirm-clear-dialog {
        width: 64;
        max-width: 90vw;
        height: auto;
        padding: 2;
        layout: vertical;
        border: round $error 60%;
        background: $surface 10%;
    }

    #confirm-title {
        text-style: bold;
        padding-bottom: 1;
    }

    #confirm-hint {
        color: $text-muted;
        padding-bottom: 1;
    }

    #confirm-actions {
        layout: horizontal;
        align: right middle;
        height: auto;
        padding-top: 1;
    }

    #confirm-clear {
        margin-left: 1;
    }
    """

    def compose(self) -> ComposeResult:
        with Container(id="confirm-clear-dialog"):
            yield Label("Clear all logs?", id="confirm-title")
            yield Static(
                "Every entry in the log store will be deleted. This cannot be undone.",
                id="confirm-hint",
            )
            with Container(id="confirm-actions"):
                yield Button("Cancel", id="cancel-clear")
                yield Button("Delete everything", id="confirm-clear", variant="error")

    def on_mount(self) -> None:
        self.query_one("#cancel-clear", Button).focus()

    async def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def on_button_pressed(self, event: Button.Pressed) -> None:  # type: ignore[override]
        if event.button.id == "cancel-clear":
            self.dismiss(False)
        elif event.button.id == "confirm-clear":
            self.dismiss(True)
