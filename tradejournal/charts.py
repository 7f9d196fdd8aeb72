"""Chart helpers: display titles, measurements and sequential navigation."""

from typing import Optional

from tradejournal.models import Chart, Measurement


def format_chart_title(chart: Chart, symbol: Optional[str] = None) -> str:
    """Build the display title used when listing charts.

    Example: ``ID:12 | AAPL | 2024-03-01 | daily``
    """
    ticker_display = symbol or f"Ticker ID:{chart.ticker}"
    date_str = chart.timestamp.strftime("%Y-%m-%d")
    chart_id = chart.id if chart.id is not None else "new"
    return f"ID:{chart_id} | {ticker_display} | {date_str} | {chart.timeframe}"


def calculate_percentage_change(start_price: float, end_price: float) -> Optional[float]:
    """Percent move from start to end; None if either price is zero."""
    if not start_price or not end_price:
        return None
    return (end_price - start_price) / start_price * 100


def with_percentage_changes(measurements: list[Measurement]) -> list[Measurement]:
    """Return measurements with percentage_change filled in."""
    return [
        m.model_copy(
            update={"percentage_change": calculate_percentage_change(m.start_price, m.end_price)}
        )
        for m in measurements
    ]


def adjacent_chart(ordered: list[Chart], current: Chart, step: int) -> Optional[Chart]:
    """Find the next (step=1) or previous (step=-1) chart by nav index.

    Args:
        ordered: Charts with a nav index, sorted by (nav_index, id).
        current: The chart being viewed.
        step: +1 for next, -1 for previous.

    Returns:
        The neighbouring chart, wrapping from the end to the start (or the
        start to the end). None when there are no navigable charts.
    """
    if not ordered:
        return None

    if current.nav_index is None:
        return ordered[0] if step > 0 else ordered[-1]

    key = (current.nav_index, current.id)
    if step > 0:
        for chart in ordered:
            if (chart.nav_index, chart.id) > key:
                return chart
        return ordered[0]

    for chart in reversed(ordered):
        if (chart.nav_index, chart.id) < key:
            return chart
    return ordered[-1]
