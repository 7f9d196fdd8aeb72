"""Tests for background ticker and tag aggregate maintenance.

**Feature: trade-journal**
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Any, Optional

import pytest

from tradejournal.aggregates import AggregateCoordinator
from tradejournal.db import DataStore, Repository, StoreRepository


class InstrumentedRepository(Repository):
    """Wraps a store repository to gate reads, fail updates and observe writes."""

    def __init__(self, inner: StoreRepository):
        self.inner = inner
        self.gate: Optional[asyncio.Event] = None
        self.failing: set[str] = set()
        self.updates: list[tuple[str, int, dict[str, Any]]] = []
        self.on_update = None

    async def find(self, collection, where=None, limit=None, page=1, sort=None):
        if self.gate is not None:
            await self.gate.wait()
        return await self.inner.find(collection, where, limit, page, sort)

    async def find_by_id(self, collection, record_id):
        return await self.inner.find_by_id(collection, record_id)

    async def update(self, collection, record_id, data):
        if collection in self.failing:
            raise RuntimeError(f"{collection} is read-only")
        self.updates.append((collection, record_id, data))
        doc = await self.inner.update(collection, record_id, data)
        if self.on_update is not None:
            self.on_update(collection, doc)
        return doc


@pytest.fixture
def store():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = DataStore(Path(tmpdir) / "test.db")
        store.insert("tickers", {"symbol": "AAPL", "name": "Apple"})
        store.insert("tickers", {"symbol": "MSFT", "name": "Microsoft"})
        for name in ("breakout", "pullback", "gap"):
            store.insert("tags", {"name": name})
        yield store


@pytest.fixture
def repository(store: DataStore):
    return InstrumentedRepository(StoreRepository(store))


def add_trade(store: DataStore, ticker: int, status: str, pl: Optional[float]) -> dict:
    return store.insert(
        "trades",
        {
            "ticker": ticker,
            "entry_date": "2024-01-02T00:00:00",
            "status": status,
            "profit_loss_amount": pl,
        },
    )


def add_chart(store: DataStore, ticker: int, tags: list[int]) -> dict:
    return store.insert(
        "charts", {"ticker": ticker, "timestamp": "2024-01-02T00:00:00", "tags": tags}
    )


async def wait_until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition not reached")


class TestTradeAggregates:
    """
    **Feature: trade-journal, Property: Trade aggregates match a fresh recount**

    *For any* sequence of trade writes and deletes, once the coordinator is
    idle the ticker's trade count and P/L equal a recount from scratch.
    """

    @pytest.mark.asyncio
    async def test_counts_and_realized_pl(self, store: DataStore, repository):
        add_trade(store, 1, "closed", 200.0)
        add_trade(store, 1, "partial", -50.5)
        add_trade(store, 1, "open", None)
        add_trade(store, 2, "closed", 999.0)

        async with AggregateCoordinator(repository) as coordinator:
            coordinator.trade_changed({"ticker": 1})

        ticker = store.find_by_id("tickers", 1)
        assert ticker["trades_count"] == 3
        assert ticker["profit_loss"] == 149.5

    @pytest.mark.asyncio
    async def test_recount_after_delete(self, store: DataStore, repository):
        first = add_trade(store, 1, "closed", 200.0)
        add_trade(store, 1, "closed", 100.0)

        async with AggregateCoordinator(repository) as coordinator:
            coordinator.trade_changed(first)
            await coordinator.flush()

            deleted = store.delete("trades", first["id"])
            coordinator.trade_deleted(deleted)

        ticker = store.find_by_id("tickers", 1)
        assert ticker["trades_count"] == 1
        assert ticker["profit_loss"] == 100.0

    @pytest.mark.asyncio
    async def test_ticker_reference_forms(self, store: DataStore, repository):
        add_trade(store, 2, "closed", 10.0)

        async with AggregateCoordinator(repository) as coordinator:
            coordinator.trade_changed({"ticker": {"id": 2, "symbol": "MSFT"}})

        assert store.find_by_id("tickers", 2)["trades_count"] == 1


class TestChartAggregates:
    """
    **Feature: trade-journal, Property: Chart aggregates match a fresh recount**
    """

    @pytest.mark.asyncio
    async def test_counts_tags_and_tag_counts(self, store: DataStore, repository):
        add_chart(store, 1, [2, 1])
        add_chart(store, 1, [2])
        add_chart(store, 2, [2, 3])

        async with AggregateCoordinator(repository) as coordinator:
            coordinator.chart_changed({"ticker": 1, "tags": [2]})

        ticker = store.find_by_id("tickers", 1)
        assert ticker["charts_count"] == 2
        assert ticker["tags"] == [1, 2]

        # Tag counts are global, not per ticker
        assert store.find_by_id("tags", 1)["charts_count"] == 1
        assert store.find_by_id("tags", 2)["charts_count"] == 3

    @pytest.mark.asyncio
    async def test_deleted_chart_tags_recounted(self, store: DataStore, repository):
        add_chart(store, 1, [1])
        only_gap = add_chart(store, 1, [3])

        async with AggregateCoordinator(repository) as coordinator:
            coordinator.chart_changed(only_gap)
            await coordinator.flush()
            assert store.find_by_id("tags", 3)["charts_count"] == 1

            coordinator.chart_deleted(store.delete("charts", only_gap["id"]))

        assert store.find_by_id("tags", 3)["charts_count"] == 0
        ticker = store.find_by_id("tickers", 1)
        assert ticker["charts_count"] == 1
        assert ticker["tags"] == [1]

    @pytest.mark.asyncio
    async def test_removed_tag_recounted_via_previous_tags(self, store: DataStore, repository):
        chart = add_chart(store, 1, [1, 2])

        async with AggregateCoordinator(repository) as coordinator:
            coordinator.chart_changed(chart)
            await coordinator.flush()

            updated = store.update("charts", chart["id"], {"tags": [1]})
            coordinator.chart_changed(updated, previous_tags=chart["tags"])

        assert store.find_by_id("tags", 2)["charts_count"] == 0
        assert store.find_by_id("tickers", 1)["tags"] == [1]

    @pytest.mark.asyncio
    async def test_empty_tag_set_is_written(self, store: DataStore, repository):
        store.update("tickers", 1, {"tags": [1, 2]})
        add_chart(store, 1, [])

        async with AggregateCoordinator(repository) as coordinator:
            coordinator.chart_changed({"ticker": 1, "tags": []})

        assert store.find_by_id("tickers", 1)["tags"] == []


class TestReentrancy:
    """
    **Feature: trade-journal, Property: Write-backs never re-trigger themselves**

    *For any* recompute whose own ticker update fires another change
    notification, the notification is dropped while the recompute is running.
    """

    @pytest.mark.asyncio
    async def test_write_back_is_dropped(self, store: DataStore, repository):
        add_trade(store, 1, "closed", 50.0)
        coordinator = AggregateCoordinator(repository)
        repository.on_update = lambda collection, doc: coordinator.trade_changed(
            {"ticker": doc["id"]}
        )

        async with coordinator:
            coordinator.trade_changed({"ticker": 1})

        ticker_updates = [u for u in repository.updates if u[0] == "tickers"]
        assert len(ticker_updates) == 1
        assert coordinator.pending == 0

    @pytest.mark.asyncio
    async def test_concurrent_trigger_blocked_while_in_flight(self, store: DataStore, repository):
        add_trade(store, 1, "closed", 50.0)
        repository.gate = asyncio.Event()

        async with AggregateCoordinator(repository) as coordinator:
            coordinator.trade_changed({"ticker": 1})
            await wait_until(lambda: coordinator.in_flight(1, "trades"))

            coordinator.trade_changed({"ticker": 1})
            assert coordinator.pending == 0

            # A different kind of job for the same ticker is not blocked
            coordinator.chart_changed({"ticker": 1, "tags": []})
            assert coordinator.pending == 1

            repository.gate.set()

        assert not coordinator.in_flight(1)
        ticker_updates = [u for u in repository.updates if u[0] == "tickers"]
        assert len(ticker_updates) == 2

    @pytest.mark.asyncio
    async def test_other_ticker_not_blocked(self, store: DataStore, repository):
        repository.gate = asyncio.Event()

        async with AggregateCoordinator(repository, workers=2) as coordinator:
            coordinator.trade_changed({"ticker": 1})
            await wait_until(lambda: coordinator.in_flight(1))

            coordinator.trade_changed({"ticker": 2})
            await wait_until(lambda: coordinator.in_flight(2))

            repository.gate.set()

        assert {u[1] for u in repository.updates if u[0] == "tickers"} == {1, 2}


class TestFailureIsolation:
    """Recompute failures are logged, swallowed and release their marker."""

    @pytest.mark.asyncio
    async def test_failure_logged_and_marker_released(self, store: DataStore, repository, caplog):
        repository.failing.add("tickers")

        with caplog.at_level(logging.ERROR):
            async with AggregateCoordinator(repository) as coordinator:
                coordinator.trade_changed({"ticker": 1})

        assert not coordinator.in_flight(1)
        assert any("Error recomputing trades" in r.getMessage() for r in caplog.records)

        # The ticker is not stuck: the next job runs
        repository.failing.clear()
        add_trade(store, 1, "closed", 5.0)
        async with coordinator:
            coordinator.trade_changed({"ticker": 1})
        assert store.find_by_id("tickers", 1)["trades_count"] == 1

    @pytest.mark.asyncio
    async def test_tag_failure_does_not_stop_ticker_update(self, store: DataStore, repository, caplog):
        add_chart(store, 1, [1])
        repository.failing.add("tags")

        with caplog.at_level(logging.ERROR):
            async with AggregateCoordinator(repository) as coordinator:
                coordinator.chart_changed({"ticker": 1, "tags": [1]})

        assert store.find_by_id("tickers", 1)["charts_count"] == 1
        assert any("tag 1" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_missing_or_invalid_ticker_ignored(self, repository, caplog):
        coordinator = AggregateCoordinator(repository)

        coordinator.trade_changed({"status": "open"})
        assert coordinator.pending == 0

        with caplog.at_level(logging.WARNING):
            coordinator.chart_changed({"ticker": "not-an-id", "tags": []})
        assert coordinator.pending == 0
        assert any("Ignoring charts aggregate request" in r.getMessage() for r in caplog.records)


class TestLifecycle:
    """Starting, flushing and stopping the workers."""

    @pytest.mark.asyncio
    async def test_flush_without_workers_raises_when_jobs_queued(self, repository):
        coordinator = AggregateCoordinator(repository)
        await coordinator.flush()

        coordinator.trade_changed({"ticker": 1})
        with pytest.raises(RuntimeError):
            await coordinator.flush()

        await coordinator.start()
        await coordinator.await_idle()
        await coordinator.stop()
        assert not coordinator.running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, repository):
        coordinator = AggregateCoordinator(repository, workers=3)
        await coordinator.start()
        await coordinator.start()
        assert coordinator.running
        assert len(coordinator._workers) == 3
        await coordinator.stop()


class TestManualRefresh:
    """Manual refresh recomputes counts immediately and reports per ticker."""

    @pytest.mark.asyncio
    async def test_refresh_all(self, store: DataStore, repository):
        add_trade(store, 1, "closed", 10.0)
        add_chart(store, 1, [])
        add_chart(store, 2, [])

        results = await AggregateCoordinator(repository).refresh_ticker_counts()

        by_symbol = {r.symbol: r for r in results}
        assert by_symbol["AAPL"].charts_count == 1
        assert by_symbol["AAPL"].trades_count == 1
        assert by_symbol["AAPL"].profit_loss == 10.0
        assert by_symbol["MSFT"].charts_count == 1
        assert store.find_by_id("tickers", 2)["charts_count"] == 1

    @pytest.mark.asyncio
    async def test_refresh_one(self, store: DataStore, repository):
        results = await AggregateCoordinator(repository).refresh_ticker_counts(2)
        assert [r.symbol for r in results] == ["MSFT"]

        assert await AggregateCoordinator(repository).refresh_ticker_counts(99) == []

    @pytest.mark.asyncio
    async def test_refresh_failure_reported(self, store: DataStore, repository, caplog):
        repository.failing.add("tickers")

        with caplog.at_level(logging.ERROR):
            results = await AggregateCoordinator(repository).refresh_ticker_counts()

        assert len(results) == 2
        assert all(r.error == "Failed to refresh counts" for r in results)
        assert all(r.charts_count is None for r in results)
