import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock

from textual.widgets import Button, Switch

sys.path.append(str(Path(__file__).resolve().parents[1]))

from tailview.app import TailViewerApp
from tailview.config import TailConfig
from tailview.models import Level
from tailview.query import DEFAULT_TAIL_LEVELS
from tailview.services import LogStoreError
from tailview.storage import SessionState, StateStore
from tailview.widgets.chart_panel import ChartPanel

from fakes import FakeLogStore, make_snapshot


def _make_app(tmp_path, store: FakeLogStore, **state) -> tuple[TailViewerApp, StateStore]:
    state.setdefault("auto_refresh", False)
    state_store = StateStore(root=tmp_path)
    state_store.save(SessionState(**state))
    app = TailViewerApp(config=TailConfig(min_loading_ms=0), client=store, store=state_store)
    return app, state_store


def test_initial_load_paginates_and_navigates(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot(range(130))])
        app, _ = _make_app(tmp_path, store)
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)
            session = app.session

            assert session.paginator.total_pages == 3
            assert session.paginator.current_page == 1
            assert app.pager.query_one("#page-previous", Button).disabled

            app.action_next_page()
            await pilot.pause()
            assert session.paginator.current_page == 2
            assert not app.pager.query_one("#page-previous", Button).disabled

            app.filter_bar.query_one("#go-latest", Button).press()
            await pilot.pause()
            assert session.paginator.current_page == 1
            assert len(store.queries) == 1

    asyncio.run(_exercise())


def test_refresh_key_issues_manual_fetch(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1]), make_snapshot([1, 2])])
        app, _ = _make_app(tmp_path, store)
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)
            app.tail_log.focus()
            await pilot.press("r")
            await pilot.pause(0.1)

            assert len(store.queries) == 2
            assert len(app.session.snapshot) == 2
            assert app.session.highlights == frozenset()

    asyncio.run(_exercise())


def test_error_banner_shows_and_dismisses(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([LogStoreError("store offline", status=503)])
        app, _ = _make_app(tmp_path, store)
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)
            banner = app.query_one("#error-banner")

            assert not banner.has_class("-hidden")
            assert app.session.error == "store offline"

            app.query_one("#dismiss-error", Button).press()
            await pilot.pause()
            assert banner.has_class("-hidden")
            assert app.session.error is None

    asyncio.run(_exercise())


def test_level_click_refetches_with_new_levels(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1, 2])])
        app, _ = _make_app(tmp_path, store)
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)
            await pilot.click("#tail-levels #level-warning")
            await pilot.pause(0.1)

            assert store.queries[-1].levels == ("ERROR",)
            assert app.session.filters.levels == frozenset({Level.ERROR})

            app.action_clear_filters()
            await pilot.pause(0.1)
            assert app.session.filters.levels == DEFAULT_TAIL_LEVELS
            assert store.queries[-1].levels == ("WARNING", "ERROR")
            assert app.filter_bar.level_toggles.active == DEFAULT_TAIL_LEVELS

    asyncio.run(_exercise())


def test_distinct_toggle_is_sent_and_persisted(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        app, state_store = _make_app(tmp_path, store)
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)
            app.filter_bar.query_one("#distinct-toggle", Switch).toggle()
            await pilot.pause(0.1)

            assert store.queries[-1].distinct is True
            assert state_store.load().distinct is True

    asyncio.run(_exercise())


def test_clear_logs_requires_confirmation(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot(range(60)), make_snapshot([])])
        app, _ = _make_app(tmp_path, store)
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)

            app.action_clear_logs()
            await pilot.pause()
            await pilot.click("#cancel-clear")
            await pilot.pause()
            assert store.cleared == 0

            app.action_clear_logs()
            await pilot.pause()
            await pilot.click("#confirm-clear")
            await pilot.pause(0.1)

            assert store.cleared == 1
            assert len(app.session.snapshot) == 0
            assert app.session.paginator.current_page == 1

    asyncio.run(_exercise())


def test_copy_logs_puts_export_on_clipboard(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1, 2, 3])])
        app, _ = _make_app(tmp_path, store)
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)
            app.copy_to_clipboard = MagicMock()

            app.action_copy_logs()
            await pilot.pause(0.1)

            app.copy_to_clipboard.assert_called_once()
            text = app.copy_to_clipboard.call_args.args[0]
            assert "Total Entries: 3" in text
            assert "Size: 2 KB" in text
            assert text.rstrip().endswith("[ERROR] [sync] message 3")

    asyncio.run(_exercise())


def test_auto_refresh_and_chart_period_are_persisted(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        app, state_store = _make_app(tmp_path, store)
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)
            assert app.session.auto_refresh is False

            app.action_toggle_auto_refresh()
            await pilot.pause()
            assert app.session.auto_refresh is True
            assert app.filter_bar.query_one("#auto-refresh-toggle", Switch).value is True
            assert state_store.load().auto_refresh is True

            app.chart_panel.post_message(ChartPanel.PeriodChanged("7d"))
            await pilot.pause()
            assert state_store.load().chart_period == "7d"

    asyncio.run(_exercise())


def test_persisted_state_seeds_new_session(tmp_path) -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        app, _ = _make_app(tmp_path, store, distinct=True, chart_period="1h")
        async with app.run_test(size=(200, 50)) as pilot:
            await pilot.pause(0.1)

            assert store.queries[0].distinct is True
            assert app.aggregator.period == "1h"
            assert store.chart_calls[0] == ("1h", ())

    asyncio.run(_exercise())
