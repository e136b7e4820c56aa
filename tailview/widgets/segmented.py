from __future__ import annotations

from typing import Sequence

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.binding import Binding
from textual.message import Message
from textual.widgets import Static


class Segment(Static, can_focus=True):
    """One pill inside a ``SegmentedButtons`` group."""

    BINDINGS = [
        Binding("enter,space", "choose", "Choose", show=False),
        Binding("left", "step(-1)", "Previous", show=False),
        Binding("right", "step(1)", "Next", show=False),
    ]

    def __init__(self, value: str, label: str) -> None:
        super().__init__(classes="segment", id=f"segment-{value}")
        self.value = value
        self.label = label

    def render(self) -> Text:
        return Text(self.label, justify="center")

    def on_click(self, event: events.Click) -> None:
        event.stop()
        self.action_choose()

    def action_choose(self) -> None:
        self.post_message(self.Chosen(self))

    def action_step(self, direction: int) -> None:
        self.post_message(self.Stepped(self, direction))

    class Chosen(Message):
        def __init__(self, segment: "Segment") -> None:
            super().__init__()
            self.segment = segment

    class Stepped(Message):
        def __init__(self, segment: "Segment", direction: int) -> None:
            super().__init__()
            self.segment = segment
            self.direction = direction


class SegmentedButtons(Static):
    """Single-choice pill group; used for the chart period selector."""

    DEFAULT_CSS = """
    SegmentedButtons {
        layout: horizontal;
        background: $surface 6%;
        border: round $surface 18%;
        padding: 0 1;
        height: 3;
        width: auto;
        overflow: hidden;
    }

    SegmentedButtons > .segment {
        background: $surface 14%;
        color: $text;
        text-style: bold;
        padding: 0 2;
        height: 1;
        min-width: 6;
        width: auto;
        margin-right: 1;
    }

    SegmentedButtons > .segment:last-child {
        margin-right: 0;
    }

    SegmentedButtons > .segment:focus {
        background: $surface 20%;
        text-style: bold underline;
    }

    SegmentedButtons > .segment.-active {
        background: $accent 35%;
        text-style: bold underline;
    }
    """

    def __init__(
        self,
        options: Sequence[tuple[str, str]],
        *,
        value: str | None = None,
        id: str | None = None,
    ) -> None:
        super().__init__(id=id)
        self._options = list(options)
        self._current = value if value in self.values else self._options[0][0]

    @property
    def value(self) -> str:
        return self._current

    @property
    def values(self) -> list[str]:
        return [value for value, _ in self._options]

    def compose(self) -> ComposeResult:
        for value, label in self._options:
            yield Segment(value, label)

    def on_mount(self) -> None:
        self._sync()

    def set_value(self, value: str) -> None:
        """Select *value* without posting ``ValueChanged``."""

        if value in self.values:
            self._current = value
            self._sync()

    def nudge(self, direction: int, *, anchor: str) -> bool:
        """Move focus one segment left (-1) or right (+1) of *anchor*."""

        values = self.values
        if anchor not in values:
            return False
        index = values.index(anchor) + direction
        if not 0 <= index < len(values):
            return False
        self.query_one(f"#segment-{values[index]}", Segment).focus()
        return True

    def _sync(self) -> None:
        for segment in self.query(Segment):
            segment.set_class(segment.value == self._current, "-active")

    def on_segment_chosen(self, event: Segment.Chosen) -> None:
        event.stop()
        if event.segment.value == self._current:
            return
        self._current = event.segment.value
        self._sync()
        self.post_message(self.ValueChanged(self, self._current))

    def on_segment_stepped(self, event: Segment.Stepped) -> None:
        event.stop()
        self.nudge(event.direction, anchor=event.segment.value)

    class ValueChanged(Message):
        def __init__(self, segmented: "SegmentedButtons", value: str) -> None:
            super().__init__()
            self.segmented = segmented
            self.value = value

        @property
        def control(self) -> "SegmentedButtons":
            return self.segmented
