"""Performance statistics over closed and partially closed trades."""

from tradejournal.models import NormalizedStats, Trade, TradeStats


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _adjusted_win_loss_ratio(batting_average: float, avg_win: float, avg_loss: float) -> float:
    if avg_loss == 0 or batting_average >= 100:
        return 0.0
    win_rate = batting_average / 100
    return (win_rate * avg_win) / ((1 - win_rate) * abs(avg_loss))


def _expectancy(batting_average: float, avg_win: float, avg_loss: float) -> float:
    win_rate = batting_average / 100
    return win_rate * avg_win + (1 - win_rate) * avg_loss


def _normalized_stats(trades: list[Trade], batting_average: float) -> NormalizedStats:
    """Statistics over the trades that carry normalized metrics."""
    normalized = [t for t in trades if t.normalized_metrics is not None]
    if not normalized:
        return NormalizedStats()

    winners = [t for t in normalized if t.normalized_metrics.profit_loss_percent > 0]
    losers = [t for t in normalized if t.normalized_metrics.profit_loss_percent < 0]

    total_pl = sum(t.normalized_metrics.profit_loss_amount for t in normalized)

    # Investment as if every trade had used the standard size
    investment = 0.0
    for trade in normalized:
        factor = trade.normalization_factor or 1
        if factor > 0:
            investment += (trade.position_size or 0) / factor

    avg_win = _mean([t.normalized_metrics.profit_loss_percent for t in winners])
    avg_loss = _mean([t.normalized_metrics.profit_loss_percent for t in losers])
    max_gain = max((t.normalized_metrics.profit_loss_percent for t in winners), default=0.0)
    max_loss = min((t.normalized_metrics.profit_loss_percent for t in losers), default=0.0)

    gross_wins = sum(t.normalized_metrics.profit_loss_amount for t in winners)
    gross_losses = abs(sum(t.normalized_metrics.profit_loss_amount for t in losers))

    return NormalizedStats(
        total_profit_loss=total_pl,
        total_profit_loss_percent=total_pl / investment * 100 if investment else 0.0,
        average_r_ratio=_mean([t.normalized_metrics.r_ratio or 0 for t in normalized]),
        profit_factor=gross_wins / gross_losses if gross_losses else 0.0,
        max_gain_percent=max_gain,
        max_loss_percent=max_loss,
        max_gain_loss_ratio=abs(max_gain / max_loss) if max_loss else 0.0,
        average_win_percent=avg_win,
        average_loss_percent=avg_loss,
        win_loss_ratio=abs(avg_win / avg_loss) if avg_loss else 0.0,
        adjusted_win_loss_ratio=_adjusted_win_loss_ratio(batting_average, avg_win, avg_loss),
        expectancy=_expectancy(batting_average, avg_win, avg_loss),
    )


def calculate_trade_stats(trades: list[Trade]) -> TradeStats:
    """Calculate performance statistics for a list of trades.

    Trades are classified as winners, losers or break-even by the sign of
    their realized P/L percent.

    Args:
        trades: Closed and/or partially closed trades.

    Returns:
        TradeStats with standard and normalized figures.
    """
    closed_count = sum(1 for t in trades if t.status == "closed")
    partial_count = sum(1 for t in trades if t.status == "partial")

    if not trades:
        return TradeStats()

    winners = [t for t in trades if (t.profit_loss_percent or 0) > 0]
    losers = [t for t in trades if (t.profit_loss_percent or 0) < 0]
    break_even = len(trades) - len(winners) - len(losers)

    batting_average = len(winners) / len(trades) * 100
    avg_win = _mean([t.profit_loss_percent for t in winners])
    avg_loss = _mean([t.profit_loss_percent for t in losers])

    gross_wins = sum(t.profit_loss_amount or 0 for t in winners)
    gross_losses = abs(sum(t.profit_loss_amount or 0 for t in losers))

    max_gain = max((t.profit_loss_percent for t in winners), default=0.0)
    max_loss = min((t.profit_loss_percent for t in losers), default=0.0)

    total_pl = sum(t.profit_loss_amount or 0 for t in trades)
    total_invested = sum((t.entry_price or 0) * (t.shares or 0) for t in trades)

    return TradeStats(
        total_trades=len(trades),
        winning_trades=len(winners),
        losing_trades=len(losers),
        break_even_trades=break_even,
        batting_average=batting_average,
        average_win_percent=avg_win,
        average_loss_percent=avg_loss,
        win_loss_ratio=abs(avg_win / avg_loss) if avg_loss else 0.0,
        adjusted_win_loss_ratio=_adjusted_win_loss_ratio(batting_average, avg_win, avg_loss),
        average_r_ratio=_mean([t.r_ratio or 0 for t in trades]),
        profit_factor=gross_wins / gross_losses if gross_losses else 0.0,
        expectancy=_expectancy(batting_average, avg_win, avg_loss),
        average_days_held_winners=_mean([t.days_held or 0 for t in winners]),
        average_days_held_losers=_mean([t.days_held or 0 for t in losers]),
        max_gain_percent=max_gain,
        max_loss_percent=max_loss,
        max_gain_loss_ratio=abs(max_gain / max_loss) if max_loss else 0.0,
        total_profit_loss=total_pl,
        total_profit_loss_percent=total_pl / total_invested * 100 if total_invested else 0.0,
        closed_count=closed_count,
        partial_count=partial_count,
        normalized=_normalized_stats(trades, batting_average),
    )
