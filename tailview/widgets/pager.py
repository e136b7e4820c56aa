from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.message import Message
from textual.widgets import Button, Input, Static

from ..pagination import Paginator

NAV_IDS = ("page-first", "page-previous", "page-next", "page-last")


def render_page_window(paginator: Paginator) -> Text:
    text = Text()
    for page in paginator.page_window():
        if page == paginator.current_page:
            text.append(f"[{page}]", style="bold reverse")
        else:
            text.append(str(page), style="#94a3b8")
        text.append(" ")
    text.append(f" Page {paginator.current_page} of {paginator.total_pages}", style="bold")
    return text


class PaginationBar(Container):
    DEFAULT_CSS = """
    PaginationBar {
        layout: horizontal;
        height: 3;
        padding: 0 1;
    }

    PaginationBar Button {
        min-width: 6;
        margin-right: 1;
    }

    PaginationBar #page-window {
        width: 1fr;
        padding: 1 1 0 1;
    }

    PaginationBar #page-input {
        width: 12;
        border: tall $surface 25%;
    }
    """

    def __init__(self) -> None:
        super().__init__(id="pager")

    def compose(self) -> ComposeResult:
        yield Button("«", id="page-first")
        yield Button("‹", id="page-previous")
        yield Static("", id="page-window")
        yield Input(placeholder="Go to", id="page-input")
        yield Button("›", id="page-next")
        yield Button("»", id="page-last")

    def update_from(self, paginator: Paginator) -> None:
        self.query_one("#page-window", Static).update(render_page_window(paginator))
        self.query_one("#page-first", Button).disabled = paginator.is_first
        self.query_one("#page-previous", Button).disabled = paginator.is_first
        self.query_one("#page-next", Button).disabled = paginator.is_last
        self.query_one("#page-last", Button).disabled = paginator.is_last

    def on_button_pressed(self, event: Button.Pressed) -> None:  # type: ignore[override]
        if event.button.id in NAV_IDS:
            event.stop()
            self.post_message(self.Navigate(event.button.id.removeprefix("page-")))

    def on_input_submitted(self, event: Input.Submitted) -> None:  # type: ignore[override]
        if event.input.id != "page-input":
            return
        event.stop()
        event.input.value = ""
        self.post_message(self.Navigate("goto", event.value))

    class Navigate(Message):
        def __init__(self, action: str, page: str | None = None) -> None:
            super().__init__()
            self.action = action
            self.page = page
