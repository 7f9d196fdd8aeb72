"""Trade metric calculations.

Everything here is a pure function of a trade's fields: risk, realized
profit/loss, R-ratio, status, days held, position size, mark-to-market
metrics and metrics normalized to the trader's standard position size.
Trades missing entry price, shares or initial stop are returned unchanged.
"""

import logging
import math
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from tradejournal.models import CurrentMetrics, NormalizedMetrics, Trade, TradeExit
from tradejournal.models.trade import TradeDirection, TradeStatus, to_local_naive

logger = logging.getLogger(__name__)

DEFAULT_TARGET_POSITION_SIZE = 25000.0
SECONDS_PER_DAY = 60 * 60 * 24

# Fields filled in by calculate_trade_metrics; status is re-derived separately.
DERIVED_FIELDS = (
    "position_size",
    "risk_amount",
    "risk_percent",
    "profit_loss_amount",
    "profit_loss_percent",
    "r_ratio",
    "days_held",
    "current_metrics",
    "normalized_metrics",
    "normalization_factor",
)


class ExitSharesExceededError(ValueError):
    """Raised when a trade exits more shares than it holds."""

    def __init__(self, exited: float, shares: float):
        self.exited = exited
        self.shares = shares
        super().__init__(f"Exited shares ({exited:g}) exceed position shares ({shares:g})")


def _usable(value: Optional[float]) -> bool:
    """True for a finite, non-zero number."""
    return value is not None and math.isfinite(value) and value != 0


def has_required_inputs(trade: Trade) -> bool:
    """Check that entry price, shares and initial stop are present and numeric."""
    return (
        _usable(trade.entry_price)
        and _usable(trade.shares)
        and _usable(trade.initial_stop_loss)
    )


def derive_status(shares: Optional[float], exits: Iterable[TradeExit]) -> TradeStatus:
    """Derive trade status from cumulative exited shares.

    Args:
        shares: Position size in shares.
        exits: Exit events.

    Returns:
        'closed' when exited >= shares, 'partial' when some shares are
        exited, otherwise 'open'.
    """
    exited = sum(exit_.shares for exit_ in exits)
    if exited <= 0:
        return "open"
    if shares is not None and exited >= shares:
        return "closed"
    return "partial"


def validate_exits(trade: Trade) -> None:
    """Raise ExitSharesExceededError if exits exceed the position."""
    if trade.shares is None:
        return
    exited = trade.exited_shares
    if exited > trade.shares:
        raise ExitSharesExceededError(exited, trade.shares)


def calculate_position_size(entry_price: float, shares: float) -> float:
    """Dollar value of the position at entry."""
    return round(entry_price * shares, 2)


def calculate_risk(
    direction: TradeDirection,
    entry_price: float,
    stop_price: float,
    shares: float,
) -> tuple[float, float]:
    """Calculate initial risk.

    A stop on the wrong side of entry yields negative risk; it is not
    rejected.

    Returns:
        Tuple of (risk amount, risk percent), unrounded.
    """
    if direction == "long":
        risk_per_share = entry_price - stop_price
    else:
        risk_per_share = stop_price - entry_price

    risk_amount = risk_per_share * shares
    risk_percent = risk_per_share / entry_price * 100
    return risk_amount, risk_percent


def _pl_per_share(direction: TradeDirection, entry_price: float, exit_price: float) -> float:
    if direction == "long":
        return exit_price - entry_price
    return entry_price - exit_price


def calculate_realized(
    direction: TradeDirection,
    entry_price: float,
    exits: Iterable[TradeExit],
    risk_amount: float,
) -> dict[str, Optional[float]]:
    """Calculate realized profit/loss from exits.

    Args:
        direction: Long or short.
        entry_price: Price at entry.
        exits: Exit events.
        risk_amount: Unrounded initial risk amount.

    Returns:
        Dictionary with profit_loss_amount, profit_loss_percent and r_ratio,
        all None when nothing has been exited.
    """
    total_pl = 0.0
    shares_exited = 0.0

    for exit_ in exits:
        total_pl += _pl_per_share(direction, entry_price, exit_.price) * exit_.shares
        shares_exited += exit_.shares

    if shares_exited <= 0:
        return {"profit_loss_amount": None, "profit_loss_percent": None, "r_ratio": None}

    pl_percent = total_pl / (entry_price * shares_exited) * 100
    r_ratio = total_pl / risk_amount if risk_amount > 0 else 0.0

    return {
        "profit_loss_amount": round(total_pl, 2),
        "profit_loss_percent": round(pl_percent, 2),
        "r_ratio": round(r_ratio, 2),
    }


def calculate_days_held(
    entry_date: datetime,
    status: TradeStatus,
    exits: list[TradeExit],
    now: datetime,
) -> int:
    """Whole days (rounded up) from entry to last exit, or to now if still held."""
    if status == "closed" and exits:
        end = max(exit_.date for exit_ in exits)
    else:
        end = now

    elapsed = abs((to_local_naive(end) - to_local_naive(entry_date)).total_seconds())
    return math.ceil(elapsed / SECONDS_PER_DAY)


def active_stop(trade: Trade) -> float:
    """Most recently dated stop revision, else the initial stop."""
    if trade.modified_stops:
        latest = max(trade.modified_stops, key=lambda stop: stop.date)
        return latest.price
    return trade.initial_stop_loss


def calculate_current_metrics(trade: Trade, now: datetime) -> Optional[CurrentMetrics]:
    """Calculate mark-to-market metrics for an open or partial position.

    Returns None when the trade is closed, has no current price, or has no
    shares remaining.
    """
    if trade.status == "closed" or not _usable(trade.current_price):
        return None

    price = trade.current_price
    entry = trade.entry_price
    shares = trade.shares
    is_long = trade.is_long

    realized_pl = 0.0
    for exit_ in trade.exits:
        realized_pl += _pl_per_share(trade.direction, entry, exit_.price) * exit_.shares

    remaining = shares - trade.exited_shares
    if remaining <= 0:
        return None

    stop = active_stop(trade)

    if is_long:
        unrealized_pl = (price - entry) * remaining
        risk_per_share = max(0.0, price - stop)
        initial_risk_per_share = max(0.0, entry - trade.initial_stop_loss)
    else:
        unrealized_pl = (entry - price) * remaining
        risk_per_share = max(0.0, stop - price)
        initial_risk_per_share = max(0.0, trade.initial_stop_loss - entry)

    current_risk_amount = risk_per_share * remaining
    current_risk_percent = risk_per_share / price * 100

    total_pl = realized_pl + unrealized_pl
    total_investment = shares * entry
    total_pl_percent = total_pl / total_investment * 100 if total_investment != 0 else 0.0

    initial_risk_amount = initial_risk_per_share * shares
    r_ratio = total_pl / initial_risk_amount if initial_risk_amount != 0 else 0.0

    # Shares to sell at the current price so that, with realized P/L, a stop-out
    # on the rest nets zero.
    break_even = 0.0
    if is_long and price > stop:
        break_even = (remaining * (entry - stop) - realized_pl) / (price - stop)
    elif not is_long and price < stop:
        break_even = (remaining * (stop - entry) - realized_pl) / (stop - price)
    break_even = max(0.0, min(break_even, remaining))

    return CurrentMetrics(
        profit_loss_amount=round(total_pl, 2),
        profit_loss_percent=round(total_pl_percent, 2),
        risk_amount=round(current_risk_amount, 2),
        risk_percent=round(current_risk_percent, 2),
        r_ratio=round(r_ratio, 2),
        break_even_shares=round(break_even, 2),
        last_updated=now,
    )


def calculate_normalized_metrics(
    trade: Trade,
    default_target_size: float = DEFAULT_TARGET_POSITION_SIZE,
) -> dict[str, Any]:
    """Scale a trade's metrics to the standard position size.

    Dollar P/L is passed through. Percent P/L is multiplied by the
    normalization factor (position size / target size). R-ratio is passed
    through unchanged.

    Returns:
        Field updates: normalization_factor and, when there is P/L to
        normalize, normalized_metrics.
    """
    if not trade.position_size:
        return {}

    target = trade.target_position_size or default_target_size
    factor = trade.position_size / target
    updates: dict[str, Any] = {"normalization_factor": round(factor, 4)}

    if factor <= 0:
        return updates

    if trade.status in ("closed", "partial"):
        amount = trade.profit_loss_amount
        percent = trade.profit_loss_percent
        r_ratio = trade.r_ratio
    elif trade.current_metrics is not None:
        amount = trade.current_metrics.profit_loss_amount
        percent = trade.current_metrics.profit_loss_percent
        r_ratio = trade.current_metrics.r_ratio
    else:
        return updates

    if amount is None or percent is None:
        return updates

    updates["normalized_metrics"] = NormalizedMetrics(
        profit_loss_amount=round(amount, 2),
        profit_loss_percent=round(percent * factor, 2),
        r_ratio=round(r_ratio, 2) if r_ratio else None,
    )
    return updates


def calculate_trade_metrics(
    trade: Trade,
    now: Optional[datetime] = None,
    default_target_size: float = DEFAULT_TARGET_POSITION_SIZE,
) -> Trade:
    """Fill in every derived field of a trade.

    Args:
        trade: Trade with raw input fields.
        now: Reference time for days held and current metrics.
        default_target_size: Target size used when the trade has none.

    Returns:
        A new Trade with derived fields set, or the input trade unchanged
        if entry price, shares or initial stop is missing.
    """
    if not has_required_inputs(trade):
        return trade

    now = to_local_naive(now or datetime.now())
    status = derive_status(trade.shares, trade.exits)
    risk_amount, risk_percent = calculate_risk(
        trade.direction, trade.entry_price, trade.initial_stop_loss, trade.shares
    )

    updates: dict[str, Any] = {
        "status": status,
        "position_size": calculate_position_size(trade.entry_price, trade.shares),
        "risk_amount": round(risk_amount, 2),
        "risk_percent": round(risk_percent, 2),
        "days_held": calculate_days_held(trade.entry_date, status, trade.exits, now),
    }
    updates.update(
        calculate_realized(trade.direction, trade.entry_price, trade.exits, risk_amount)
    )
    trade = trade.model_copy(update=updates)

    if trade.status == "closed":
        trade = trade.model_copy(update={"current_metrics": None})
    else:
        current = calculate_current_metrics(trade, now)
        if current is not None:
            trade = trade.model_copy(update={"current_metrics": current})

    return trade.model_copy(update=calculate_normalized_metrics(trade, default_target_size))


def enrich_trade_data(
    raw: Mapping[str, Any],
    now: Optional[datetime] = None,
    default_target_size: float = DEFAULT_TARGET_POSITION_SIZE,
) -> dict[str, Any]:
    """Pre-save transform: raw trade data in, enriched trade data out.

    Data that does not validate as a Trade is returned unmodified.
    """
    try:
        trade = Trade.model_validate(dict(raw))
    except ValidationError as e:
        logger.debug("Skipping metrics for invalid trade data: %s", e)
        return dict(raw)

    if not has_required_inputs(trade):
        return dict(raw)

    return calculate_trade_metrics(trade, now, default_target_size).model_dump()
