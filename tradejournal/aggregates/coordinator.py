"""Background maintenance of ticker and tag aggregates.

Tickers carry denormalized counters (chart count, trade count, total P/L,
tag set) and tags carry a chart count. After a trade or chart is written
the coordinator recomputes them from scratch by re-querying the
repository. Recomputes run on background worker tasks fed by a queue, so
the write that triggered them never waits and never fails because of
them.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from tradejournal.db.repository import Repository, as_id

logger = logging.getLogger(__name__)

JobKind = Literal["trades", "charts"]

REALIZED_STATUSES = ["closed", "partial"]


@dataclass(frozen=True)
class RecomputeJob:
    """A queued request to recompute one ticker's aggregates."""

    kind: JobKind
    ticker_id: int
    tag_ids: frozenset[int] = frozenset()


class RefreshResult(BaseModel):
    """Outcome of a manual counts refresh for one ticker."""

    id: int
    symbol: Optional[str] = None
    charts_count: Optional[int] = None
    trades_count: Optional[int] = None
    profit_loss: Optional[float] = None
    error: Optional[str] = Field(default=None, description="Set when the refresh failed")

    model_config = {"frozen": True}


def _get(doc: Any, key: str) -> Any:
    if isinstance(doc, Mapping):
        return doc.get(key)
    return getattr(doc, key, None)


class AggregateCoordinator:
    """Keeps ticker and tag aggregates eventually consistent.

    Submissions are fire-and-forget. A submission for a ticker whose
    recompute of the same kind is already running is dropped, which stops
    a write-back from re-triggering itself forever. The in-flight markers
    live on the instance and are only safe under cooperative scheduling
    within one process.
    """

    def __init__(
        self,
        repository: Repository,
        chart_scan_limit: int = 200,
        trade_scan_limit: int = 500,
        workers: int = 1,
    ):
        """Initialize the coordinator.

        Args:
            repository: Record repository to query and update.
            chart_scan_limit: Max charts read when collecting a ticker's tags.
            trade_scan_limit: Max trades read when summing a ticker's P/L.
            workers: Number of background worker tasks.
        """
        self.repository = repository
        self.chart_scan_limit = chart_scan_limit
        self.trade_scan_limit = trade_scan_limit
        self._worker_count = max(1, workers)
        self._queue: asyncio.Queue[RecomputeJob] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self._tickers_in_flight: set[tuple[JobKind, int]] = set()
        self._tags_in_flight: set[int] = set()

    # ==================== Lifecycle ====================

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Number of queued jobs not yet picked up."""
        return self._queue.qsize()

    def in_flight(self, ticker_id: int, kind: Optional[JobKind] = None) -> bool:
        """Whether a recompute for the ticker is currently running."""
        kinds = [kind] if kind else ["trades", "charts"]
        return any((k, ticker_id) in self._tickers_in_flight for k in kinds)

    async def start(self) -> None:
        """Start the background workers."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(), name=f"aggregates-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.debug("Started %d aggregate worker(s)", self._worker_count)

    async def stop(self) -> None:
        """Cancel the background workers. Queued jobs are left unprocessed."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def flush(self) -> None:
        """Wait until every queued recompute has finished.

        Raises:
            RuntimeError: If jobs are queued but the workers are not running.
        """
        if not self._workers:
            if self._queue.qsize():
                raise RuntimeError("Aggregate coordinator is not running")
            return
        await self._queue.join()

    await_idle = flush

    async def __aenter__(self) -> "AggregateCoordinator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.flush()
        await self.stop()

    # ==================== Submission ====================

    def trade_changed(self, doc: Any) -> None:
        """Queue a trade-stats recompute after a trade was created or updated."""
        self._submit("trades", doc)

    def trade_deleted(self, doc: Any) -> None:
        """Queue a trade-stats recompute after a trade was deleted."""
        self._submit("trades", doc)

    def chart_changed(self, doc: Any, previous_tags: Iterable[Any] = ()) -> None:
        """Queue a chart-stats recompute after a chart was created or updated.

        Args:
            doc: The saved chart.
            previous_tags: Tags the chart had before the update, so that
                removed tags get recounted too.
        """
        self._submit("charts", doc, [*(_get(doc, "tags") or []), *previous_tags])

    def chart_deleted(self, doc: Any) -> None:
        """Queue a chart-stats recompute after a chart was deleted."""
        self._submit("charts", doc, _get(doc, "tags") or [])

    def _submit(self, kind: JobKind, doc: Any, tag_refs: Iterable[Any] = ()) -> None:
        ticker_ref = _get(doc, "ticker")
        if ticker_ref is None:
            return

        try:
            ticker_id = as_id(ticker_ref)
            tag_ids = frozenset(as_id(tag) for tag in tag_refs)
        except ValueError as e:
            logger.warning("Ignoring %s aggregate request: %s", kind, e)
            return

        if (kind, ticker_id) in self._tickers_in_flight:
            logger.debug("Skipping %s recompute for ticker %s - already processing", kind, ticker_id)
            return

        self._queue.put_nowait(RecomputeJob(kind, ticker_id, tag_ids))

    # ==================== Worker ====================

    async def _worker(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._run(job)
            finally:
                self._queue.task_done()

    async def _run(self, job: RecomputeJob) -> None:
        key = (job.kind, job.ticker_id)
        if key in self._tickers_in_flight:
            logger.debug(
                "Skipping %s recompute for ticker %s - already processing", job.kind, job.ticker_id
            )
            return

        self._tickers_in_flight.add(key)
        try:
            if job.kind == "trades":
                await self.recompute_trade_stats(job.ticker_id)
            else:
                await self.recompute_chart_stats(job.ticker_id, job.tag_ids)
        except Exception:
            logger.exception("Error recomputing %s aggregates for ticker %s", job.kind, job.ticker_id)
        finally:
            self._tickers_in_flight.discard(key)

    # ==================== Recomputes ====================

    async def _trade_totals(self, ticker_id: int) -> tuple[int, float]:
        trades_count = await self.repository.count("trades", {"ticker": ticker_id})
        realized = await self.repository.find(
            "trades",
            {"ticker": ticker_id, "status": {"in": REALIZED_STATUSES}},
            limit=self.trade_scan_limit,
        )

        total = 0.0
        for doc in realized.docs:
            amount = doc.get("profit_loss_amount")
            if amount is not None:
                total += float(amount)
        return trades_count, round(total, 2)

    async def recompute_trade_stats(self, ticker_id: int) -> dict[str, Any]:
        """Recount a ticker's trades and total realized P/L and store them."""
        trades_count, profit_loss = await self._trade_totals(ticker_id)
        logger.debug("Ticker %s: %d trades, P/L %.2f", ticker_id, trades_count, profit_loss)
        return await self.repository.update(
            "tickers",
            ticker_id,
            {"trades_count": trades_count, "profit_loss": profit_loss},
        )

    async def recompute_chart_stats(
        self, ticker_id: int, touched_tags: Iterable[int] = ()
    ) -> dict[str, Any]:
        """Recount a ticker's charts, rebuild its tag set and recount tags.

        Args:
            ticker_id: Ticker to refresh.
            touched_tags: Extra tags to recount, e.g. tags removed from or
                carried by a deleted chart.
        """
        charts_count = await self.repository.count("charts", {"ticker": ticker_id})
        charts = await self.repository.find(
            "charts", {"ticker": ticker_id}, limit=self.chart_scan_limit
        )

        tag_ids: set[int] = set()
        for chart in charts.docs:
            for tag in chart.get("tags") or []:
                try:
                    tag_ids.add(as_id(tag))
                except ValueError:
                    logger.warning("Chart %s has an invalid tag reference: %r", chart.get("id"), tag)

        logger.debug(
            "Ticker %s: %d charts, %d tags", ticker_id, charts_count, len(tag_ids)
        )
        ticker = await self.repository.update(
            "tickers",
            ticker_id,
            {"charts_count": charts_count, "tags": sorted(tag_ids)},
        )

        for tag_id in sorted(tag_ids | set(touched_tags)):
            await self.recount_tag(tag_id)

        return ticker

    async def recount_tag(self, tag_id: int) -> Optional[int]:
        """Recount the charts using a tag and store it.

        Returns:
            The new count, or None if the tag was skipped or could not be
            updated.
        """
        if tag_id in self._tags_in_flight:
            logger.debug("Skipping tag %s recount - already processing", tag_id)
            return None

        self._tags_in_flight.add(tag_id)
        try:
            count = await self.repository.count("charts", {"tags": {"contains": tag_id}})
            await self.repository.update("tags", tag_id, {"charts_count": count})
            return count
        except Exception:
            logger.exception("Error recounting charts for tag %s", tag_id)
            return None
        finally:
            self._tags_in_flight.discard(tag_id)

    # ==================== Manual refresh ====================

    async def refresh_ticker_counts(self, ticker_id: Optional[int] = None) -> list[RefreshResult]:
        """Recompute chart count, trade count and P/L right away.

        Args:
            ticker_id: Ticker to refresh. If None, refreshes every ticker.

        Returns:
            One result per ticker; failures are reported, not raised.
        """
        if ticker_id is not None:
            doc = await self.repository.find_by_id("tickers", ticker_id)
            tickers = [doc] if doc else []
        else:
            tickers = (await self.repository.find("tickers", limit=1000)).docs

        return list(await asyncio.gather(*(self._refresh_one(doc) for doc in tickers)))

    async def _refresh_one(self, ticker: dict[str, Any]) -> RefreshResult:
        ticker_id = ticker["id"]
        try:
            charts_count = await self.repository.count("charts", {"ticker": ticker_id})
            trades_count, profit_loss = await self._trade_totals(ticker_id)
            await self.repository.update(
                "tickers",
                ticker_id,
                {
                    "charts_count": charts_count,
                    "trades_count": trades_count,
                    "profit_loss": profit_loss,
                },
            )
        except Exception:
            logger.exception("Error refreshing counts for ticker %s", ticker_id)
            return RefreshResult(
                id=ticker_id, symbol=ticker.get("symbol"), error="Failed to refresh counts"
            )

        return RefreshResult(
            id=ticker_id,
            symbol=ticker.get("symbol"),
            charts_count=charts_count,
            trades_count=trades_count,
            profit_loss=profit_loss,
        )
