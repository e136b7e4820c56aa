from __future__ import annotations

from typing import Iterable

from rich.text import Text
from textual.message import Message
from textual.widgets import RichLog

from ..models import SEVERITY_COLORS, LogEntry, normalize_category

HIGHLIGHT_STYLE = "on #1e3a5f"
EMPTY_TEXT = "No log entries match the current filters."
LOADING_TEXT = "Loading logs…"


def render_entry(entry: LogEntry, *, highlighted: bool = False) -> Text:
    line = Text(no_wrap=False)
    line.append(entry.timestamp or "-", style="#94a3b8")
    line.append(" ")
    line.append(f"{entry.level.value:<8}", style=f"bold {SEVERITY_COLORS[entry.level]}")
    line.append(f" [{normalize_category(entry.category)}]", style="#38bdf8")
    if entry.function:
        line.append(f" [{entry.function}]", style="#c084fc")
    line.append(" ")
    line.append(entry.message)
    if highlighted:
        line.stylize(HIGHLIGHT_STYLE)
    return line


class TailLog(RichLog):
    """Log pane for one page of entries; reports its scroll position."""

    DEFAULT_CSS = """
    TailLog {
        height: 1fr;
        border: round $surface 20%;
    }

    TailLog.-paging {
        opacity: 70%;
    }
    """

    def __init__(self, *, id: str | None = None) -> None:
        super().__init__(id=id, wrap=True, markup=False, highlight=False, auto_scroll=False)

    def show_page(self, entries: Iterable[LogEntry], highlights: frozenset[int], *, loading: bool = False) -> int:
        """Replace the pane content with *entries*; returns the number written."""

        self.clear()
        count = 0
        for entry in entries:
            highlighted = entry.id is not None and entry.id in highlights
            self.write(render_entry(entry, highlighted=highlighted), scroll_end=False)
            count += 1
        if not count:
            self.write(Text(LOADING_TEXT if loading else EMPTY_TEXT, style="italic #94a3b8"), scroll_end=False)
        return count

    def watch_scroll_y(self, old_value: float, new_value: float) -> None:
        super().watch_scroll_y(old_value, new_value)
        self.post_message(
            self.Scrolled(
                self,
                scroll_top=new_value,
                scroll_height=self.virtual_size.height,
                client_height=self.scrollable_content_region.height,
            )
        )

    class Scrolled(Message):
        def __init__(self, log: "TailLog", *, scroll_top: float, scroll_height: float, client_height: float) -> None:
            super().__init__()
            self.log_widget = log
            self.scroll_top = scroll_top
            self.scroll_height = scroll_height
            self.client_height = client_height
