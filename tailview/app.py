from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Literal, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.widgets import Button, Footer, Label, TabbedContent, TabPane

from .charts import ChartAggregator
from .config import TailConfig, load_config
from .export import collect_export, format_file_size
from .logsetup import configure_logging
from .query import FilterState
from .scheduler import TailSession
from .services import LogStoreClient, LogStoreError
from .storage import SessionState, StateStore
from .widgets.advanced_drawer import CleanupDrawer
from .widgets.chart_panel import ChartPanel
from .widgets.confirm_dialog import ConfirmClearDialog
from .widgets.filter_bar import FilterBar
from .widgets.pager import PaginationBar
from .widgets.tail_log import TailLog

logger = logging.getLogger(__name__)

PAGE_TRANSITION_SECONDS = 0.2


class TailViewerApp(App[None]):
    CSS = """
    Screen { layout: vertical; }

    TabbedContent { height: 1fr; }
    TabPane { padding: 0; }

    #tail-tab { layout: vertical; }

    #error-banner {
        layout: horizontal;
        height: auto;
        background: $error 20%;
        padding: 0 2;
    }

    #error-banner.-hidden { display: none; }

    #error-text {
        width: 1fr;
        padding: 1 0;
        color: $text;
    }

    #status-line {
        height: 1;
        padding: 0 2;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("r", "refresh_now", "Refresh", show=True),
        Binding("a", "toggle_auto_refresh", "Auto-refresh", show=True),
        Binding("[", "previous_page", "Prev page", show=False),
        Binding("]", "next_page", "Next page", show=False),
        Binding("g", "go_latest", "Latest", show=False),
        Binding("G", "scroll_bottom", "Bottom", show=False),
        Binding("c", "copy_logs", "Copy logs", show=True),
        Binding("X", "clear_logs", "Clear logs", show=False),
        Binding("q", "quit_app", "Quit", show=True),
    ]

    AUTO_FOCUS = "TailLog"

    state = reactive(SessionState())

    def __init__(
        self,
        *,
        config: Optional[TailConfig] = None,
        client: Optional[LogStoreClient] = None,
        store: Optional[StateStore] = None,
    ) -> None:
        super().__init__()
        self._persist_state = False
        self._config = config or load_config()
        self._store = store or StateStore()
        self._owns_client = client is None
        self.client = client or LogStoreClient(self._config.base_url, timeout=self._config.request_timeout)
        self.set_reactive(TailViewerApp.state, self._store.load())

        filters = FilterState(
            lines=self._config.default_lines,
            distinct=self.state.distinct,
            auto_cleanup=self._config.auto_cleanup,
            delete_debug=self._config.delete_debug,
        )
        self.session = TailSession(
            self.client,
            filters=filters,
            refresh_interval=self._config.refresh_interval,
            highlight_seconds=self._config.highlight_seconds,
            min_loading=self._config.min_loading,
            near_bottom_threshold=self._config.near_bottom_threshold,
            on_change=self._on_session_change,
            on_auto_scroll=self._on_auto_scroll,
        )
        self.aggregator = ChartAggregator(
            self.client,
            period=self.state.chart_period,
            source=self._config.chart_source,
            sample_lines=self._config.chart_sample_lines,
        )
        self.filter_bar = FilterBar(filters, auto_refresh=self.state.auto_refresh)
        self.cleanup_drawer = CleanupDrawer(filters)
        self.tail_log = TailLog(id="tail-log")
        self.pager = PaginationBar()
        self.chart_panel = ChartPanel(self.aggregator)
        self._render_key: Optional[tuple] = None
        self._auto_scroll_pending = False
        self._shown_error: Optional[str] = None

    def compose(self) -> ComposeResult:
        with TabbedContent(initial="tail-tab"):
            with TabPane("Tail", id="tail-tab"):
                yield self.filter_bar
                yield self.cleanup_drawer
                with Horizontal(id="error-banner", classes="-hidden"):
                    yield Label("", id="error-text")
                    yield Button("Dismiss", id="dismiss-error", variant="error")
                yield Label("", id="status-line")
                yield self.tail_log
                yield self.pager
            with TabPane("Charts", id="charts-tab"):
                yield self.chart_panel
        yield Footer()

    async def on_mount(self) -> None:
        self._persist_state = True
        self.session.start(auto_refresh=self.state.auto_refresh)
        self.run_worker(self._load_filter_options(), name="filter-options", exit_on_error=False)

    async def on_unmount(self) -> None:
        self.session.dispose(cancel_pending=True)
        if self._owns_client:
            await self.client.aclose()

    # ------------------------------------------------------------------ session callbacks

    def _on_session_change(self, session: TailSession) -> None:
        if not self.is_running:
            return
        self.filter_bar.set_countdown(session.countdown, enabled=session.auto_refresh, loading=session.loading)
        self._render_status(session)
        self._render_error(session.error)

        paginator = session.paginator
        placeholder = session.loading and not session.snapshot.entries
        key = (id(session.snapshot), paginator.current_page, session.highlights, placeholder)
        if key == self._render_key:
            return
        page_changed = self._render_key is not None and self._render_key[1] != paginator.current_page
        self._render_key = key
        self._render_tail(session)
        if page_changed:
            self._mark_page_transition()
        if self._auto_scroll_pending:
            self._auto_scroll_pending = False
            self.call_after_refresh(self.tail_log.scroll_end, animate=True)

    def _on_auto_scroll(self, session: TailSession) -> None:
        self._auto_scroll_pending = True

    def _render_tail(self, session: TailSession) -> None:
        scroll_y = self.tail_log.scroll_y
        loading = session.loading and not session.snapshot.entries
        self.tail_log.show_page(session.paginator.visible, session.highlights, loading=loading)
        if not self._auto_scroll_pending:
            self.call_after_refresh(self.tail_log.scroll_to, y=scroll_y, animate=False)
        self.pager.update_from(session.paginator)

    def _render_status(self, session: TailSession) -> None:
        snapshot = session.snapshot
        info = session.info
        parts = [
            info.file_path if info and info.file_path else snapshot.file_path or "(no file)",
            format_file_size(info.size if info else snapshot.size),
            f"{snapshot.total_lines} lines in file",
            f"{len(snapshot)} matching",
        ]
        if session.loading:
            parts.append("loading…")
        self.query_one("#status-line", Label).update(" · ".join(parts))

    def _render_error(self, error: Optional[str]) -> None:
        banner = self.query_one("#error-banner", Horizontal)
        if error is None:
            banner.add_class("-hidden")
            self._shown_error = None
            return
        banner.remove_class("-hidden")
        self.query_one("#error-text", Label).update(Text(error))
        if error != self._shown_error:
            self._shown_error = error
            self._show_message(error, "error")

    def _mark_page_transition(self) -> None:
        self.tail_log.add_class("-paging")
        self.set_timer(PAGE_TRANSITION_SECONDS, lambda: self.tail_log.remove_class("-paging"))

    # ------------------------------------------------------------------ state

    def _update_state(self, **changes: object) -> None:
        self.state = replace(self.state, **changes)

    def watch_state(self, old_state: SessionState, new_state: SessionState) -> None:  # type: ignore[override]
        if not getattr(self, "_persist_state", False):
            return
        if old_state == new_state:
            return
        self._store.save(new_state)

    def _apply_filters(self, filters: FilterState) -> None:
        self.filter_bar.filters = filters
        if filters.distinct != self.state.distinct:
            self._update_state(distinct=filters.distinct)
        self.session.on_filter_change(filters)

    # ------------------------------------------------------------------ actions

    def action_refresh_now(self) -> None:
        self.session.on_manual_refresh()

    def action_toggle_auto_refresh(self) -> None:
        enabled = not self.session.auto_refresh
        self.filter_bar.set_auto_refresh(enabled)
        self._set_auto_refresh(enabled)

    def action_previous_page(self) -> None:
        self.session.previous_page()

    def action_next_page(self) -> None:
        self.session.next_page()

    def action_go_latest(self) -> None:
        self.session.first_page()
        self.tail_log.scroll_home(animate=False)

    def action_scroll_bottom(self) -> None:
        self.tail_log.scroll_end(animate=True)

    def action_clear_filters(self) -> None:
        filters = self.session.filters.cleared(lines=self._config.default_lines)
        self.filter_bar.apply_filters(filters)
        self._apply_filters(filters)

    def action_copy_logs(self) -> None:
        self.run_worker(self._copy_logs(), name="copy-logs", group="export", exclusive=True, exit_on_error=False)

    def action_clear_logs(self) -> None:
        if not self.is_mounted:
            return
        self.run_worker(self._confirm_clear(), name="clear-logs", group="dialogs", exit_on_error=False)

    def action_toggle_advanced(self) -> None:
        self.cleanup_drawer.toggle()

    def action_quit_app(self) -> None:
        self.exit()

    def _set_auto_refresh(self, enabled: bool) -> None:
        self.session.set_auto_refresh(enabled)
        self._update_state(auto_refresh=enabled)

    async def _load_filter_options(self) -> None:
        categories, functions = await asyncio.gather(
            self.client.get_categories(),
            self.client.get_functions(),
        )
        if not self.is_running:
            return
        self.filter_bar.set_category_options(categories)
        self.filter_bar.set_function_options(functions)

    async def _copy_logs(self) -> None:
        try:
            text, count = await collect_export(self.client, self.session.filters, self.session.info)
        except LogStoreError as exc:
            logger.warning("Copy logs failed: %s", exc.message)
            self._show_message(f"Copy failed: {exc.message}", "error")
            return
        self.copy_to_clipboard(text)
        self._show_message(f"Copied {count} log entries to the clipboard.")

    async def _confirm_clear(self) -> None:
        confirmed = await self.push_screen(ConfirmClearDialog(), wait_for_dismiss=True)
        if not confirmed:
            self._show_message("Clear logs canceled.")
            return
        if await self.session.clear_logs():
            self._show_message("All logs cleared.")
            self.chart_panel.reload()

    def _show_message(self, text: str, severity: Literal["info", "warning", "error"] = "info") -> None:
        toast_severity = {
            "info": "information",
            "warning": "warning",
            "error": "error",
        }.get(severity, "information")
        self.notify(text, severity=toast_severity, title="", markup=False)

    # ------------------------------------------------------------------ widget messages

    def on_filter_bar_filters_changed(self, message: FilterBar.FiltersChanged) -> None:
        self._apply_filters(message.filters)

    def on_filter_bar_auto_refresh_toggled(self, message: FilterBar.AutoRefreshToggled) -> None:
        self._set_auto_refresh(message.value)

    def on_filter_bar_action_triggered(self, message: FilterBar.ActionTriggered) -> None:
        handlers = {
            "refresh-now": self.action_refresh_now,
            "clear-filters": self.action_clear_filters,
            "copy-logs": self.action_copy_logs,
            "clear-logs": self.action_clear_logs,
            "go-latest": self.action_go_latest,
            "scroll-bottom": self.action_scroll_bottom,
            "toggle-advanced": self.action_toggle_advanced,
        }
        handler = handlers.get(message.action_id)
        if handler is not None:
            handler()

    def on_cleanup_drawer_cleanup_changed(self, message: CleanupDrawer.CleanupChanged) -> None:
        self._apply_filters(replace(self.session.filters, **message.as_changes()))

    def on_pagination_bar_navigate(self, message: PaginationBar.Navigate) -> None:
        if message.action == "goto":
            self.session.go_to_page(message.page)
            return
        moves = {
            "first": self.session.first_page,
            "previous": self.session.previous_page,
            "next": self.session.next_page,
            "last": self.session.last_page,
        }
        move = moves.get(message.action)
        if move is not None:
            move()

    def on_tail_log_scrolled(self, message: TailLog.Scrolled) -> None:
        self.session.on_scroll(message.scroll_top, message.scroll_height, message.client_height)

    def on_chart_panel_period_changed(self, message: ChartPanel.PeriodChanged) -> None:
        self._update_state(chart_period=message.period)

    def on_button_pressed(self, event: Button.Pressed) -> None:  # type: ignore[override]
        if event.button.id == "dismiss-error":
            self.session.dismiss_error()


def run() -> None:  # pragma: no cover - script entry point
    config = load_config()
    configure_logging(config.log_level)
    logger.info("Starting tail viewer against %s", config.base_url)
    TailViewerApp(config=config).run()
