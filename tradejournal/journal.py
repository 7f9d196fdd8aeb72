"""Journal service: the write path for tickers, tags, charts and trades.

Trade writes run the metrics calculator before saving. Every trade and
chart write then hands the saved record to the aggregate coordinator,
which refreshes ticker and tag counters in the background.
"""

import logging
from datetime import date, datetime, time
from typing import Any, Callable, Mapping, Optional

from tradejournal.aggregates import AggregateCoordinator, RefreshResult
from tradejournal.charts import adjacent_chart, format_chart_title, with_percentage_changes
from tradejournal.config import JournalConfig
from tradejournal.db import DataStore, RecordNotFoundError, StoreRepository, as_id
from tradejournal.metrics import (
    DEFAULT_TARGET_POSITION_SIZE,
    DERIVED_FIELDS,
    calculate_trade_metrics,
    calculate_trade_stats,
    validate_exits,
)
from tradejournal.models import (
    Chart,
    StopRevision,
    Tag,
    Ticker,
    Trade,
    TradeExit,
    TradeStats,
    User,
    UserPreferences,
)

logger = logging.getLogger(__name__)

STATS_SCAN_LIMIT = 1000


def _payload(model) -> dict[str, Any]:
    """Serialize a model for the store, leaving out its ID."""
    return model.model_dump(mode="json", exclude={"id"})


class Journal:
    """Async service over the store, calculator and aggregate coordinator."""

    def __init__(
        self,
        repository: StoreRepository,
        coordinator: Optional[AggregateCoordinator] = None,
        default_target_position_size: float = DEFAULT_TARGET_POSITION_SIZE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the journal.

        Args:
            repository: Store-backed repository.
            coordinator: Aggregate coordinator; one is created if omitted.
            default_target_position_size: Used when a user has no preference.
            clock: Source of "now" for days held and current metrics.
        """
        self.repository = repository
        self.coordinator = coordinator or AggregateCoordinator(repository)
        self.default_target_position_size = default_target_position_size
        self._clock = clock

    @classmethod
    def from_config(cls, config: JournalConfig) -> "Journal":
        """Build a journal and its collaborators from configuration."""
        repository = StoreRepository(DataStore(config.db_path))
        coordinator = AggregateCoordinator(
            repository,
            chart_scan_limit=config.chart_scan_limit,
            trade_scan_limit=config.trade_scan_limit,
            workers=config.workers,
        )
        return cls(
            repository,
            coordinator,
            default_target_position_size=config.default_target_position_size,
        )

    async def start(self) -> None:
        await self.coordinator.start()

    async def stop(self) -> None:
        await self.coordinator.stop()

    async def flush(self) -> None:
        """Wait for pending aggregate recomputes."""
        await self.coordinator.flush()

    async def __aenter__(self) -> "Journal":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.flush()
        finally:
            await self.stop()

    async def _require(self, collection: str, record_id: int) -> dict[str, Any]:
        doc = await self.repository.find_by_id(collection, record_id)
        if doc is None:
            raise RecordNotFoundError(collection, record_id)
        return doc

    # ==================== Tickers ====================

    async def create_ticker(
        self,
        symbol: str,
        name: str,
        description: Optional[str] = None,
        sector: Optional[str] = None,
    ) -> Ticker:
        """Create a ticker. Symbols are stored upper-cased."""
        ticker = Ticker(
            symbol=symbol.strip().upper(), name=name, description=description, sector=sector
        )
        doc = await self.repository.insert("tickers", _payload(ticker))
        return Ticker.model_validate(doc)

    async def get_ticker(self, ticker_id: int) -> Ticker:
        return Ticker.model_validate(await self._require("tickers", ticker_id))

    async def get_ticker_by_symbol(self, symbol: str) -> Optional[Ticker]:
        result = await self.repository.find(
            "tickers", {"symbol": symbol.strip().upper()}, limit=1
        )
        return Ticker.model_validate(result.docs[0]) if result.docs else None

    async def list_tickers(self) -> list[Ticker]:
        result = await self.repository.find("tickers", sort="symbol")
        return [Ticker.model_validate(doc) for doc in result.docs]

    async def ticker_charts(self, ticker_id: int) -> list[Chart]:
        """Charts for a ticker, newest first."""
        result = await self.repository.find("charts", {"ticker": ticker_id}, sort="-timestamp")
        return [Chart.model_validate(doc) for doc in result.docs]

    async def ticker_trades(self, ticker_id: int) -> list[Trade]:
        """Trades for a ticker, most recent entry first."""
        result = await self.repository.find("trades", {"ticker": ticker_id}, sort="-entry_date")
        return [Trade.model_validate(doc) for doc in result.docs]

    async def refresh_ticker_counts(self, ticker_id: Optional[int] = None) -> list[RefreshResult]:
        """Recompute ticker counters immediately (one ticker or all)."""
        return await self.coordinator.refresh_ticker_counts(ticker_id)

    # ==================== Tags ====================

    async def create_tag(
        self, name: str, color: str = "#9E9E9E", description: Optional[str] = None
    ) -> Tag:
        tag = Tag(name=name.strip(), color=color, description=description)
        doc = await self.repository.insert("tags", _payload(tag))
        return Tag.model_validate(doc)

    async def get_tag(self, tag_id: int) -> Tag:
        return Tag.model_validate(await self._require("tags", tag_id))

    async def get_tag_by_name(self, name: str) -> Optional[Tag]:
        result = await self.repository.find("tags", {"name": name.strip()}, limit=1)
        return Tag.model_validate(result.docs[0]) if result.docs else None

    async def list_tags(self) -> list[Tag]:
        result = await self.repository.find("tags", sort="name")
        return [Tag.model_validate(doc) for doc in result.docs]

    # ==================== Users ====================

    async def create_user(
        self,
        email: str,
        name: Optional[str] = None,
        preferences: Optional[UserPreferences] = None,
    ) -> User:
        user = User(email=email, name=name, preferences=preferences or UserPreferences())
        doc = await self.repository.insert("users", _payload(user))
        return User.model_validate(doc)

    async def get_user(self, user_id: int) -> User:
        return User.model_validate(await self._require("users", user_id))

    async def set_target_position_size(self, user_id: int, size: float) -> User:
        """Change a user's standard position size.

        Existing trades keep the target size captured when they were created.
        """
        user = await self.get_user(user_id)
        preferences = UserPreferences.model_validate(
            {**user.preferences.model_dump(), "target_position_size": size}
        )
        doc = await self.repository.update(
            "users", user_id, {"preferences": preferences.model_dump(mode="json")}
        )
        return User.model_validate(doc)

    async def _target_size_for(self, user_id: Optional[int]) -> float:
        if user_id is None:
            return self.default_target_position_size
        try:
            user = await self.get_user(user_id)
        except RecordNotFoundError:
            logger.warning("User %s not found; using default target position size", user_id)
            return self.default_target_position_size
        return user.preferences.target_position_size

    # ==================== Trades ====================

    async def _save_trade(self, trade: Trade, trade_id: Optional[int] = None) -> Trade:
        validate_exits(trade)
        trade = calculate_trade_metrics(
            trade, now=self._clock(), default_target_size=self.default_target_position_size
        )

        if trade_id is None:
            doc = await self.repository.insert("trades", _payload(trade))
        else:
            doc = await self.repository.update("trades", trade_id, _payload(trade))

        self.coordinator.trade_changed(doc)
        return Trade.model_validate(doc)

    async def create_trade(self, data: Mapping[str, Any], user_id: Optional[int] = None) -> Trade:
        """Create a trade.

        The target position size is captured here, once: an explicit value
        in ``data`` wins, then the user's preference, then the configured
        default.

        Raises:
            ExitSharesExceededError: If exits exceed the position.
            pydantic.ValidationError: If the data is not a valid trade.
        """
        data = {k: v for k, v in data.items() if k != "id"}
        if data.get("ticker") is not None:
            data["ticker"] = as_id(data["ticker"])
        if not data.get("target_position_size"):
            data["target_position_size"] = await self._target_size_for(user_id)

        return await self._save_trade(Trade.model_validate(data))

    async def get_trade(self, trade_id: int) -> Trade:
        return Trade.model_validate(await self._require("trades", trade_id))

    async def list_trades(
        self, ticker_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Trade]:
        where: dict[str, Any] = {}
        if ticker_id is not None:
            where["ticker"] = ticker_id
        if status is not None:
            where["status"] = status
        result = await self.repository.find("trades", where, sort="-entry_date")
        return [Trade.model_validate(doc) for doc in result.docs]

    async def update_trade(self, trade_id: int, changes: Mapping[str, Any]) -> Trade:
        """Apply changes to a trade and recompute its metrics.

        The target position size captured at creation is never changed.
        Derived fields are rebuilt from the merged inputs, so a trade that
        loses a required input is saved without metrics.
        """
        existing = await self.get_trade(trade_id)
        changes = {
            k: v
            for k, v in changes.items()
            if k not in ("id", "target_position_size") and k not in DERIVED_FIELDS
        }
        if changes.get("ticker") is not None:
            changes["ticker"] = as_id(changes["ticker"])

        inputs = existing.model_dump(exclude=set(DERIVED_FIELDS))
        merged = Trade.model_validate({**inputs, **changes})
        saved = await self._save_trade(merged, trade_id)

        if saved.ticker != existing.ticker:
            self.coordinator.trade_changed(existing)
        return saved

    async def add_exit(
        self,
        trade_id: int,
        price: float,
        shares: float,
        exit_date: Optional[datetime] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Trade:
        """Record a partial or full exit."""
        trade = await self.get_trade(trade_id)
        exit_ = TradeExit(
            price=price,
            shares=shares,
            date=exit_date or self._clock(),
            reason=reason,
            notes=notes,
        )
        return await self.update_trade(trade_id, {"exits": [*trade.exits, exit_]})

    async def add_stop_revision(
        self,
        trade_id: int,
        price: float,
        stop_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Trade:
        """Record a moved stop loss."""
        trade = await self.get_trade(trade_id)
        stop = StopRevision(price=price, date=stop_date or self._clock(), notes=notes)
        return await self.update_trade(trade_id, {"modified_stops": [*trade.modified_stops, stop]})

    async def mark_price(self, trade_id: int, price: float) -> Trade:
        """Set the current market price and refresh the mark-to-market metrics."""
        return await self.update_trade(trade_id, {"current_price": price})

    async def delete_trade(self, trade_id: int) -> Trade:
        doc = await self.repository.delete("trades", trade_id)
        if doc is None:
            raise RecordNotFoundError("trades", trade_id)
        self.coordinator.trade_deleted(doc)
        return Trade.model_validate(doc)

    async def trade_stats(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        ticker_id: Optional[int] = None,
        closed_only: bool = False,
    ) -> TradeStats:
        """Performance statistics for closed (and, by default, partial) trades.

        Args:
            start: Earliest entry date, inclusive.
            end: Latest entry date, inclusive.
            ticker_id: Restrict to one ticker.
            closed_only: Exclude partially closed trades.
        """
        where: dict[str, Any] = {
            "status": "closed" if closed_only else {"in": ["closed", "partial"]},
        }
        entry_range: dict[str, Any] = {}
        if start is not None:
            entry_range["greater_than_equal"] = datetime.combine(start, time.min)
        if end is not None:
            entry_range["less_than_equal"] = datetime.combine(end, time.max)
        if entry_range:
            where["entry_date"] = entry_range
        if ticker_id is not None:
            where["ticker"] = ticker_id

        result = await self.repository.find("trades", where, limit=STATS_SCAN_LIMIT)
        return calculate_trade_stats([Trade.model_validate(doc) for doc in result.docs])

    # ==================== Charts ====================

    async def _titled(self, chart: Chart) -> str:
        ticker = await self.repository.find_by_id("tickers", chart.ticker)
        return format_chart_title(chart, ticker["symbol"] if ticker else None)

    async def create_chart(self, data: Mapping[str, Any]) -> Chart:
        """Create a chart.

        The chart's nav index is the number of charts that existed before
        it; it is never reassigned, so deletions leave gaps.
        """
        data = {k: v for k, v in data.items() if k not in ("id", "nav_index", "display_title")}
        if data.get("ticker") is not None:
            data["ticker"] = as_id(data["ticker"])
        data["tags"] = [as_id(tag) for tag in data.get("tags") or []]

        nav_index = await self.repository.count("charts")
        chart = Chart.model_validate({**data, "nav_index": nav_index})
        chart = chart.model_copy(
            update={"measurements": with_percentage_changes(chart.measurements)}
        )

        doc = await self.repository.insert("charts", _payload(chart))
        saved = Chart.model_validate(doc)
        doc = await self.repository.update(
            "charts", saved.id, {"display_title": await self._titled(saved)}
        )

        self.coordinator.chart_changed(doc)
        return Chart.model_validate(doc)

    async def get_chart(self, chart_id: int) -> Chart:
        return Chart.model_validate(await self._require("charts", chart_id))

    async def update_chart(self, chart_id: int, changes: Mapping[str, Any]) -> Chart:
        """Apply changes to a chart. The nav index is kept."""
        existing = await self.get_chart(chart_id)
        changes = {
            k: v for k, v in changes.items() if k not in ("id", "nav_index", "display_title")
        }
        if changes.get("ticker") is not None:
            changes["ticker"] = as_id(changes["ticker"])
        if "tags" in changes:
            changes["tags"] = [as_id(tag) for tag in changes["tags"] or []]

        chart = Chart.model_validate({**existing.model_dump(), **changes})
        chart = chart.model_copy(
            update={"measurements": with_percentage_changes(chart.measurements)}
        )
        chart = chart.model_copy(update={"display_title": await self._titled(chart)})

        doc = await self.repository.update("charts", chart_id, _payload(chart))

        self.coordinator.chart_changed(doc, previous_tags=existing.tags)
        if chart.ticker != existing.ticker:
            self.coordinator.chart_deleted(existing)
        return Chart.model_validate(doc)

    async def delete_chart(self, chart_id: int) -> Chart:
        doc = await self.repository.delete("charts", chart_id)
        if doc is None:
            raise RecordNotFoundError("charts", chart_id)
        self.coordinator.chart_deleted(doc)
        return Chart.model_validate(doc)

    async def list_charts(self, page: int = 1, limit: int = 20) -> list[Chart]:
        """All charts, newest first."""
        result = await self.repository.find("charts", limit=limit, page=page, sort="-timestamp")
        return [Chart.model_validate(doc) for doc in result.docs]

    async def charts_by_timeframe(self, timeframe: str, page: int = 1, limit: int = 20) -> list[Chart]:
        """Charts with the given timeframe, newest first."""
        result = await self.repository.find(
            "charts", {"timeframe": timeframe}, limit=limit, page=page, sort="-timestamp"
        )
        return [Chart.model_validate(doc) for doc in result.docs]

    async def charts_by_tag(self, tag_id: int, page: int = 1, limit: int = 20) -> list[Chart]:
        """Charts carrying the given tag, newest first."""
        result = await self.repository.find(
            "charts", {"tags": {"contains": tag_id}}, limit=limit, page=page, sort="-timestamp"
        )
        return [Chart.model_validate(doc) for doc in result.docs]

    async def _navigable_charts(self) -> list[Chart]:
        result = await self.repository.find(
            "charts", {"nav_index": {"exists": True}}, sort="nav_index"
        )
        return [Chart.model_validate(doc) for doc in result.docs]

    async def next_chart(self, chart_id: int) -> Optional[Chart]:
        """The chart after this one by nav index, wrapping to the first."""
        current = await self.get_chart(chart_id)
        return adjacent_chart(await self._navigable_charts(), current, step=1)

    async def previous_chart(self, chart_id: int) -> Optional[Chart]:
        """The chart before this one by nav index, wrapping to the last."""
        current = await self.get_chart(chart_id)
        return adjacent_chart(await self._navigable_charts(), current, step=-1)
