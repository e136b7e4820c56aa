import asyncio
from dataclasses import replace

import httpx

from tailview.models import Level
from tailview.query import FilterState
from tailview.scheduler import TailSession
from tailview.services import LogStoreClient, LogStoreError

from fakes import FakeLogStore, make_snapshot


def _session(store: FakeLogStore, **kwargs) -> TailSession:
    kwargs.setdefault("min_loading", 0)
    return TailSession(store, **kwargs)


def test_initial_load_populates_without_highlighting() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1, 2, 3])])
        session = _session(store)
        task = session.start(auto_refresh=False)
        await task

        assert [entry.id for entry in session.snapshot.entries] == [1, 2, 3]
        assert session.snapshot.size == 2048
        assert session.info == store.info
        assert session.highlights == frozenset()
        assert session.loading is False
        assert session.in_flight is False
        assert session.error is None
        session.dispose()

    asyncio.run(_exercise())


def test_auto_tick_highlights_new_ids_and_expires_them() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1, 2, 3]), make_snapshot([2, 3, 4, 5])])
        session = _session(store, highlight_seconds=0.05)
        await session.start(auto_refresh=False)

        await session.on_tick()
        assert session.highlights == {4, 5}

        await asyncio.sleep(0.1)
        assert session.highlights == frozenset()
        session.dispose()

    asyncio.run(_exercise())


def test_each_highlight_batch_expires_independently() -> None:
    async def _exercise() -> None:
        store = FakeLogStore(
            [make_snapshot([1]), make_snapshot([1, 2]), make_snapshot([1, 2, 3])]
        )
        session = _session(store, highlight_seconds=0.15)
        await session.start(auto_refresh=False)

        await session.on_tick()
        await asyncio.sleep(0.08)
        await session.on_tick()
        assert session.highlights == {2, 3}

        await asyncio.sleep(0.1)
        assert session.highlights == {3}

        await asyncio.sleep(0.1)
        assert session.highlights == frozenset()
        session.dispose()

    asyncio.run(_exercise())


def test_manual_refresh_never_highlights() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1]), make_snapshot([1, 2])])
        session = _session(store)
        await session.start(auto_refresh=False)

        await session.on_manual_refresh()

        assert len(session.snapshot) == 2
        assert session.highlights == frozenset()
        session.dispose()

    asyncio.run(_exercise())


def test_unchanged_refetch_keeps_page_and_highlights_nothing() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot(range(130))])
        session = _session(store)
        await session.start(auto_refresh=False)
        session.go_to_page(3)

        await session.on_tick()

        assert session.paginator.current_page == 3
        assert session.highlights == frozenset()
        session.dispose()

    asyncio.run(_exercise())


def test_tick_while_in_flight_is_dropped_but_countdown_resets() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        store.gate = asyncio.Event()
        session = _session(store)
        first = session.start(auto_refresh=False)
        await asyncio.sleep(0.01)

        session.countdown = 2
        assert session.on_tick() is None
        assert session.on_manual_refresh() is None
        assert session.countdown == 5
        assert len(store.queries) == 1

        store.gate.set()
        await first
        assert len(store.queries) == 1
        session.dispose()

    asyncio.run(_exercise())


def test_countdown_reaching_zero_fires_fetch_and_resets() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        session = _session(store)
        await session.start(auto_refresh=False)
        session.set_auto_refresh(True)
        assert session.countdown == 5

        session.countdown = 1
        session._countdown_step()

        assert session.countdown == 5
        assert session.pending is not None
        await session.pending
        assert len(store.queries) == 2
        session.dispose()

    asyncio.run(_exercise())


def test_auto_refresh_timer_drives_fetches() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        session = _session(store, refresh_interval=0.05)
        session.start(auto_refresh=True)

        await asyncio.sleep(0.3)
        session.dispose()

        assert len(store.queries) >= 3

    asyncio.run(_exercise())


def test_failure_keeps_previous_snapshot_and_sets_error() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1, 2]), LogStoreError("store offline", status=503), make_snapshot([1, 2, 3])])
        session = _session(store)
        await session.start(auto_refresh=False)

        await session.on_manual_refresh()
        assert session.error == "store offline"
        assert [entry.id for entry in session.snapshot.entries] == [1, 2]

        session.dismiss_error()
        assert session.error is None

        await session.on_manual_refresh()
        assert len(session.snapshot) == 3
        session.dispose()

    asyncio.run(_exercise())


def test_success_clears_previous_error() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([LogStoreError("boom"), make_snapshot([1])])
        session = _session(store)
        await session.start(auto_refresh=False)
        assert session.error == "boom"

        await session.on_manual_refresh()
        assert session.error is None
        session.dispose()

    asyncio.run(_exercise())


def test_filter_change_resets_page_and_clears_highlights() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1]), make_snapshot(range(1, 131))])
        session = _session(store, highlight_seconds=5)
        await session.start(auto_refresh=False)
        await session.on_tick()
        assert session.highlights
        session.go_to_page(3)

        task = session.on_filter_change(FilterState(levels=frozenset({Level.ERROR})))
        assert session.highlights == frozenset()
        await task

        assert session.paginator.current_page == 1
        assert store.queries[-1].levels == ("ERROR",)
        session.dispose()

    asyncio.run(_exercise())


def test_filter_change_in_flight_discards_stale_result_and_refetches() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1, 2, 3]), make_snapshot([7, 8])])
        store.gate = asyncio.Event()
        session = _session(store)
        first = session.start(auto_refresh=False)
        await asyncio.sleep(0.01)

        filters = replace(FilterState(), category="db")
        assert session.on_filter_change(filters) is None

        store.gate.set()
        await first
        follow_up = session.pending
        assert follow_up is not None
        await follow_up

        assert [entry.id for entry in session.snapshot.entries] == [7, 8]
        assert store.queries[-1].category == "db"
        assert len(store.queries) == 2
        session.dispose()

    asyncio.run(_exercise())


def test_completion_after_dispose_is_discarded() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1, 2])])
        store.gate = asyncio.Event()
        changes: list[int] = []
        session = _session(store, on_change=lambda s: changes.append(len(s.snapshot)))
        task = session.start(auto_refresh=True)
        await asyncio.sleep(0.01)
        seen = len(changes)

        session.dispose()
        store.gate.set()
        await task

        assert len(session.snapshot) == 0
        assert len(changes) == seen
        assert session.on_tick() is None
        assert session.on_manual_refresh() is None

    asyncio.run(_exercise())


def test_dispose_can_cancel_outstanding_fetch() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        store.gate = asyncio.Event()
        session = _session(store)
        task = session.start(auto_refresh=False)
        await asyncio.sleep(0.01)

        session.dispose(cancel_pending=True)
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()
        assert len(session.snapshot) == 0

    asyncio.run(_exercise())


def test_minimum_loading_duration_holds_indicator() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        session = TailSession(store, min_loading=0.1)
        loop = asyncio.get_running_loop()
        started = loop.time()
        task = session.start(auto_refresh=False)

        await asyncio.sleep(0.03)
        assert session.loading is True
        await task

        assert session.loading is False
        assert loop.time() - started >= 0.09
        session.dispose()

    asyncio.run(_exercise())


def test_auto_scroll_only_when_near_bottom_at_issue() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1]), make_snapshot([1, 2]), make_snapshot([1, 2, 3])])
        scrolled: list[frozenset] = []
        session = _session(store, highlight_seconds=5, on_auto_scroll=lambda s: scrolled.append(s.highlights))
        await session.start(auto_refresh=False)

        session.on_scroll(999, 1100, 100)
        await session.on_tick()
        assert scrolled == [frozenset({2})]

        session.on_scroll(500, 1100, 100)
        await session.on_tick()
        assert len(scrolled) == 1
        session.dispose()

    asyncio.run(_exercise())


def test_clear_logs_refetches_from_first_page() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot(range(200)), make_snapshot(range(10))])
        session = _session(store)
        await session.start(auto_refresh=False)
        session.last_page()

        assert await session.clear_logs() is True
        assert store.cleared == 1
        await session.pending

        assert session.paginator.current_page == 1
        assert len(session.snapshot) == 10
        session.dispose()

    asyncio.run(_exercise())


def test_clear_logs_failure_is_reported_not_retried() -> None:
    async def _exercise() -> None:
        store = FakeLogStore([make_snapshot([1])])
        store.clear_error = LogStoreError("permission denied", status=403)
        session = _session(store)
        await session.start(auto_refresh=False)

        assert await session.clear_logs() is False
        assert session.error == "Failed to clear logs: permission denied"
        assert session.pending is None
        assert len(store.queries) == 1
        session.dispose()

    asyncio.run(_exercise())


def test_malformed_store_response_surfaces_as_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/logs/info"):
            return httpx.Response(200, json={"filePath": "/var/log/app.log", "totalLines": 3})
        return httpx.Response(200, json={"logs": 5})

    async def _exercise() -> None:
        client = LogStoreClient("http://store.test/api", transport=httpx.MockTransport(handler))
        session = _session(client)
        await session.start(auto_refresh=False)

        assert session.error == "Unexpected response shape from /logs"
        assert len(session.snapshot) == 0
        assert session.in_flight is False
        assert session.loading is False
        session.dispose()
        await client.aclose()

    asyncio.run(_exercise())
