from __future__ import annotations

NEAR_BOTTOM_THRESHOLD = 2


class ScrollAnchor:
    """Tracks whether the log pane sits at its bottom edge.

    The decision to auto-scroll uses the position captured when a fetch was
    issued, so scrolling away while a request is outstanding still wins.
    """

    def __init__(self, threshold: float = NEAR_BOTTOM_THRESHOLD) -> None:
        self.threshold = threshold
        self.near_bottom = True
        self._near_bottom_at_issue = True

    def update(self, scroll_top: float, scroll_height: float, client_height: float) -> bool:
        distance = scroll_height - scroll_top - client_height
        self.near_bottom = distance <= self.threshold
        return self.near_bottom

    def mark_fetch_issued(self) -> None:
        self._near_bottom_at_issue = self.near_bottom

    def should_auto_scroll(self, new_ids: frozenset[int]) -> bool:
        if not new_ids:
            return False
        return self._near_bottom_at_issue and self.near_bottom
