"""
Fetch scheduling for the tail view.

``TailSession`` owns everything the tail view mutates: the current snapshot,
pagination, the highlight set, the scroll anchor and every timer. The UI
drives it only through the ``on_*`` entry points and tears it down with
``dispose()``.

Ordering rules:
  - at most one fetch is outstanding; triggers arriving meanwhile are dropped
  - every completion checks the alive flag and its generation before writing
  - a filter change (or a clear) while a fetch is outstanding invalidates that
    fetch and issues its own request once the gate frees
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional

from .diff import diff_new_ids
from .models import FetchSnapshot, LogInfo
from .pagination import Paginator
from .query import FilterState, QueryDescriptor, build_query
from .scroll import NEAR_BOTTOM_THRESHOLD, ScrollAnchor
from .services import LogStoreClient, LogStoreError

logger = logging.getLogger(__name__)

REFRESH_INTERVAL = 5.0
HIGHLIGHT_SECONDS = 1.5
MIN_LOADING_SECONDS = 0.3


class Trigger(str, Enum):
    INITIAL = "initial"
    MANUAL = "manual"
    FILTER = "filter"
    AUTO = "auto"
    CLEAR = "clear"


PAGE_RESET_TRIGGERS = frozenset({Trigger.INITIAL, Trigger.FILTER, Trigger.CLEAR})

SessionCallback = Callable[["TailSession"], None]


class TailSession:
    def __init__(
        self,
        client: LogStoreClient,
        *,
        filters: Optional[FilterState] = None,
        refresh_interval: float = REFRESH_INTERVAL,
        highlight_seconds: float = HIGHLIGHT_SECONDS,
        min_loading: float = MIN_LOADING_SECONDS,
        near_bottom_threshold: float = NEAR_BOTTOM_THRESHOLD,
        on_change: Optional[SessionCallback] = None,
        on_auto_scroll: Optional[SessionCallback] = None,
    ) -> None:
        self._client = client
        self.filters = filters or FilterState()
        self.refresh_interval = refresh_interval
        self.countdown_start = max(1, round(refresh_interval))
        self.highlight_seconds = highlight_seconds
        self.min_loading = min_loading
        self._on_change = on_change
        self._on_auto_scroll = on_auto_scroll

        self.snapshot = FetchSnapshot()
        self.info: Optional[LogInfo] = None
        self.paginator = Paginator()
        self.anchor = ScrollAnchor(near_bottom_threshold)
        self.highlights: frozenset[int] = frozenset()
        self.error: Optional[str] = None
        self.loading = False
        self.in_flight = False
        self.auto_refresh = False
        self.countdown = self.countdown_start
        self.alive = True

        self._generation = 0
        self._pending_trigger: Optional[Trigger] = None
        self._fetch_task: Optional[asyncio.Task[None]] = None
        self._countdown_handle: Optional[asyncio.TimerHandle] = None
        self._highlight_batches: dict[int, frozenset[int]] = {}
        self._highlight_handles: dict[int, asyncio.TimerHandle] = {}
        self._batch_seq = 0

    @property
    def pending(self) -> Optional[asyncio.Task[None]]:
        """The outstanding fetch task, if any."""

        if self._fetch_task is not None and not self._fetch_task.done():
            return self._fetch_task
        return None

    # ------------------------------------------------------------------ entry points

    def start(self, *, auto_refresh: bool = True) -> Optional[asyncio.Task[None]]:
        task = self._issue(Trigger.INITIAL)
        self.set_auto_refresh(auto_refresh)
        return task

    def on_tick(self) -> Optional[asyncio.Task[None]]:
        """Automatic refresh. Resets the countdown whether or not a fetch is issued."""

        if not self.alive:
            return None
        self.countdown = self.countdown_start
        task = self._issue(Trigger.AUTO)
        if task is None:
            self._notify()
        return task

    def on_manual_refresh(self) -> Optional[asyncio.Task[None]]:
        return self._issue(Trigger.MANUAL)

    def on_filter_change(self, filters: FilterState) -> Optional[asyncio.Task[None]]:
        if not self.alive:
            return None
        self.filters = filters
        self._clear_highlights()
        if self.in_flight:
            self._invalidate_outstanding(Trigger.FILTER)
            return None
        return self._issue(Trigger.FILTER)

    def on_scroll(self, scroll_top: float, scroll_height: float, client_height: float) -> bool:
        return self.anchor.update(scroll_top, scroll_height, client_height)

    def set_auto_refresh(self, enabled: bool) -> None:
        if not self.alive:
            return
        self.auto_refresh = enabled
        self.countdown = self.countdown_start
        self._cancel_countdown()
        if enabled:
            self._schedule_countdown()
        self._notify()

    def dismiss_error(self) -> None:
        if self.error is None:
            return
        self.error = None
        self._notify()

    def first_page(self) -> int:
        return self._navigate(self.paginator.first)

    def previous_page(self) -> int:
        return self._navigate(self.paginator.previous)

    def next_page(self) -> int:
        return self._navigate(self.paginator.next)

    def last_page(self) -> int:
        return self._navigate(self.paginator.last)

    def go_to_page(self, page: object) -> int:
        return self._navigate(lambda: self.paginator.go_to(page))

    async def clear_logs(self) -> bool:
        """Truncate the store. The caller is responsible for confirming first."""

        if not self.alive:
            return False
        try:
            await self._client.clear_logs()
        except LogStoreError as exc:
            logger.error("Clearing logs failed: %s", exc.message)
            if self.alive:
                self.error = f"Failed to clear logs: {exc.message}"
                self._notify()
            return False
        if not self.alive:
            return True
        logger.info("Log store cleared")
        self._clear_highlights()
        if self.in_flight:
            self._invalidate_outstanding(Trigger.CLEAR)
        else:
            self._issue(Trigger.CLEAR)
        return True

    def dispose(self, *, cancel_pending: bool = False) -> None:
        """Stop every timer. Late completions are discarded by the alive check."""

        if not self.alive:
            return
        self.alive = False
        self._cancel_countdown()
        for handle in self._highlight_handles.values():
            handle.cancel()
        self._highlight_handles.clear()
        self._pending_trigger = None
        if cancel_pending and self.pending is not None:
            self._fetch_task.cancel()
        logger.debug("Tail session disposed")

    # ------------------------------------------------------------------ fetch path

    def _issue(self, trigger: Trigger) -> Optional[asyncio.Task[None]]:
        if not self.alive:
            return None
        if self.in_flight:
            logger.debug("Dropping %s refresh; fetch %d still in flight", trigger.value, self._generation)
            return None
        self._generation += 1
        generation = self._generation
        self.in_flight = True
        self.loading = True
        self.anchor.mark_fetch_issued()
        query = build_query(self.filters)
        logger.debug("Fetch %d issued (%s)", generation, trigger.value)
        self._fetch_task = asyncio.get_running_loop().create_task(
            self._fetch(generation, trigger, query)
        )
        self._notify()
        return self._fetch_task

    def _invalidate_outstanding(self, trigger: Trigger) -> None:
        self._generation += 1
        self._pending_trigger = trigger
        self._notify()

    async def _fetch(self, generation: int, trigger: Trigger, query: QueryDescriptor) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            failure: Optional[str] = None
            snapshot: Optional[FetchSnapshot] = None
            info: Optional[LogInfo] = None
            try:
                snapshot, info = await asyncio.gather(
                    self._client.get_logs(query),
                    self._client.get_log_info(),
                )
            except LogStoreError as exc:
                failure = exc.message

            remaining = self.min_loading - (loop.time() - started)
            if remaining > 0:
                await asyncio.sleep(remaining)

            if not self.alive or generation != self._generation:
                logger.debug("Discarding result of fetch %d (%s)", generation, trigger.value)
                return
            if failure is not None:
                logger.warning("Log refresh failed: %s", failure)
                self.error = failure
            else:
                self._apply(trigger, snapshot, info)
        finally:
            self.in_flight = False
            if self.alive:
                self.loading = False
                follow_up = self._pending_trigger
                self._pending_trigger = None
                if follow_up is not None:
                    self._issue(follow_up)
                else:
                    self._notify()

    def _apply(self, trigger: Trigger, snapshot: FetchSnapshot, info: LogInfo) -> None:
        if info is not None:
            snapshot = replace(
                snapshot,
                size=info.size,
                last_modified=snapshot.last_modified or info.last_modified,
            )
        new_ids = diff_new_ids(self.snapshot, snapshot) if trigger is Trigger.AUTO else frozenset()
        self.snapshot = snapshot
        self.info = info
        self.error = None
        self.paginator.set_entries(snapshot.entries, reset=trigger in PAGE_RESET_TRIGGERS)
        logger.debug(
            "Applied %d entries (%s), %d new, page %d/%d",
            len(snapshot),
            trigger.value,
            len(new_ids),
            self.paginator.current_page,
            self.paginator.total_pages,
        )
        if new_ids:
            self._add_highlights(new_ids)
            if self._on_auto_scroll is not None and self.anchor.should_auto_scroll(new_ids):
                self._on_auto_scroll(self)

    # ------------------------------------------------------------------ highlights

    def _add_highlights(self, ids: frozenset[int]) -> None:
        self._batch_seq += 1
        key = self._batch_seq
        self._highlight_batches[key] = ids
        self._highlight_handles[key] = asyncio.get_running_loop().call_later(
            self.highlight_seconds, self._expire_highlights, key
        )
        self._refresh_highlights()

    def _expire_highlights(self, key: int) -> None:
        self._highlight_handles.pop(key, None)
        if not self.alive:
            return
        self._highlight_batches.pop(key, None)
        self._refresh_highlights()
        self._notify()

    def _clear_highlights(self) -> None:
        for handle in self._highlight_handles.values():
            handle.cancel()
        self._highlight_handles.clear()
        self._highlight_batches.clear()
        self.highlights = frozenset()

    def _refresh_highlights(self) -> None:
        merged: set[int] = set()
        for batch in self._highlight_batches.values():
            merged.update(batch)
        self.highlights = frozenset(merged)

    # ------------------------------------------------------------------ countdown

    def _schedule_countdown(self) -> None:
        step = self.refresh_interval / self.countdown_start
        self._countdown_handle = asyncio.get_running_loop().call_later(step, self._countdown_step)

    def _cancel_countdown(self) -> None:
        if self._countdown_handle is not None:
            self._countdown_handle.cancel()
            self._countdown_handle = None

    def _countdown_step(self) -> None:
        self._countdown_handle = None
        if not self.alive or not self.auto_refresh:
            return
        self.countdown -= 1
        if self.countdown <= 0:
            self.on_tick()
        else:
            self._notify()
        self._schedule_countdown()

    # ------------------------------------------------------------------ helpers

    def _navigate(self, move: Callable[[], int]) -> int:
        before = self.paginator.current_page
        page = move()
        if page != before:
            self._notify()
        return page

    def _notify(self) -> None:
        if self.alive and self._on_change is not None:
            self._on_change(self)
