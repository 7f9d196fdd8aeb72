"""Trade commands for the trade journal CLI."""

from datetime import datetime
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradejournal.cli.common import console, pl_markup, resolve_ticker, run_with_journal
from tradejournal.models import Trade


def _show_trade(trade: Trade, symbol: Optional[str] = None) -> None:
    label = symbol or f"ticker {trade.ticker}"
    status_color = {"open": "cyan", "partial": "yellow", "closed": "dim"}[trade.status]

    lines = [
        f"[bold]#{trade.id} {label}[/bold] {trade.direction.upper()} "
        f"[{status_color}]{trade.status}[/{status_color}]",
        "",
    ]
    if trade.entry_price is not None and trade.shares is not None:
        lines.append(
            f"Entry:    {trade.shares:g} @ {trade.entry_price:.2f} "
            f"on {trade.entry_date.strftime('%Y-%m-%d')}"
        )
    if trade.initial_stop_loss is not None:
        lines.append(f"Stop:     {trade.initial_stop_loss:.2f}")
    for stop in trade.modified_stops:
        lines.append(f"          → {stop.price:.2f} ({stop.date.strftime('%Y-%m-%d')})")
    if trade.position_size is not None:
        lines.append(f"Position: ${trade.position_size:,.2f}")
    if trade.risk_amount is not None:
        lines.append(f"Risk:     ${trade.risk_amount:,.2f} ({trade.risk_percent:.2f}%)")

    if trade.exits:
        lines.append("")
        for exit_ in trade.exits:
            reason = f" ({exit_.reason})" if exit_.reason else ""
            lines.append(
                f"Exit:     {exit_.shares:g} @ {exit_.price:.2f} "
                f"on {exit_.date.strftime('%Y-%m-%d')}{reason}"
            )

    if trade.profit_loss_amount is not None:
        lines.append("")
        lines.append(
            f"Realized: {pl_markup(trade.profit_loss_amount)} "
            f"({pl_markup(trade.profit_loss_percent, '%', prefix='')}) "
            f"R {pl_markup(trade.r_ratio, prefix='')}"
        )

    current = trade.current_metrics
    if current is not None:
        lines.append(
            f"Current:  {pl_markup(current.profit_loss_amount)} "
            f"({pl_markup(current.profit_loss_percent, '%', prefix='')}) "
            f"R {pl_markup(current.r_ratio, prefix='')}"
        )
        lines.append(
            f"[dim]At risk ${current.risk_amount:,.2f} ({current.risk_percent:.2f}%) | "
            f"Break-even shares {current.break_even_shares:g}[/dim]"
        )

    normalized = trade.normalized_metrics
    if normalized is not None:
        lines.append(
            f"[dim]Normalized (x{trade.normalization_factor:.2f}): "
            f"${normalized.profit_loss_amount:,.2f} "
            f"({normalized.profit_loss_percent:.2f}%)[/dim]"
        )

    if trade.days_held is not None:
        lines.append(f"[dim]Days held: {trade.days_held}[/dim]")
    if trade.notes:
        lines.append(f"\n{trade.notes}")

    console.print(Panel("\n".join(lines), title="[bold cyan]Trade[/bold cyan]", border_style="cyan"))


async def _with_symbol(journal, trade: Trade) -> tuple[Trade, Optional[str]]:
    ticker = await journal.repository.find_by_id("tickers", trade.ticker)
    return trade, ticker["symbol"] if ticker else None


@click.group()
def trade() -> None:
    """Record trades, exits and stop changes."""


@trade.command("add")
@click.argument("symbol")
@click.option("--entry", "entry_price", type=float, required=True, help="Entry price.")
@click.option("--shares", type=float, required=True, help="Shares/contracts.")
@click.option("--stop", "stop_loss", type=float, required=True, help="Initial stop loss.")
@click.option("--short", is_flag=True, default=False, help="Short trade (default is long).")
@click.option("--date", "entry_date", type=click.DateTime(), default=None, help="Entry date.")
@click.option("--target", "target_size", type=float, default=None, help="Target position size.")
@click.option("--user-id", type=int, default=None, help="Take the target size from this user.")
@click.option(
    "--setup",
    type=click.Choice(["breakout", "pullback", "reversal", "gap", "other"]),
    default=None,
)
@click.option("--notes", default=None, help="Trade notes.")
def add_trade(
    symbol: str,
    entry_price: float,
    shares: float,
    stop_loss: float,
    short: bool,
    entry_date: Optional[datetime],
    target_size: Optional[float],
    user_id: Optional[int],
    setup: Optional[str],
    notes: Optional[str],
) -> None:
    """Open a trade.

    \b
    Examples:
      tradejournal trade add AAPL --entry 190 --shares 100 --stop 185
      tradejournal trade add TSLA --entry 250 --shares 40 --stop 262 --short
    """

    async def _add(journal):
        data = {
            "ticker": await resolve_ticker(journal, symbol),
            "direction": "short" if short else "long",
            "entry_price": entry_price,
            "shares": shares,
            "initial_stop_loss": stop_loss,
            "setup_type": setup,
            "notes": notes,
            "target_position_size": target_size,
        }
        if entry_date is not None:
            data["entry_date"] = entry_date
        return await journal.create_trade(data, user_id=user_id)

    created = run_with_journal(_add)
    _show_trade(created, symbol.upper())


@trade.command("exit")
@click.argument("trade_id", type=int)
@click.option("--price", type=float, required=True, help="Exit price.")
@click.option("--shares", type=float, required=True, help="Shares exited.")
@click.option(
    "--reason",
    type=click.Choice(["strength", "stop", "backstop", "violation", "other"]),
    default=None,
)
@click.option("--date", "exit_date", type=click.DateTime(), default=None, help="Exit date.")
def exit_trade(
    trade_id: int,
    price: float,
    shares: float,
    reason: Optional[str],
    exit_date: Optional[datetime],
) -> None:
    """Record a partial or full exit."""

    async def _exit(journal):
        updated = await journal.add_exit(trade_id, price, shares, exit_date=exit_date, reason=reason)
        return await _with_symbol(journal, updated)

    _show_trade(*run_with_journal(_exit))


@trade.command("stop")
@click.argument("trade_id", type=int)
@click.option("--price", type=float, required=True, help="New stop price.")
@click.option("--notes", default=None, help="Why the stop moved.")
def move_stop(trade_id: int, price: float, notes: Optional[str]) -> None:
    """Move the stop loss."""

    async def _stop(journal):
        updated = await journal.add_stop_revision(trade_id, price, notes=notes)
        return await _with_symbol(journal, updated)

    _show_trade(*run_with_journal(_stop))


@trade.command("mark")
@click.argument("trade_id", type=int)
@click.option("--price", type=float, required=True, help="Current market price.")
def mark(trade_id: int, price: float) -> None:
    """Update the current price of an open trade."""

    async def _mark(journal):
        updated = await journal.mark_price(trade_id, price)
        return await _with_symbol(journal, updated)

    _show_trade(*run_with_journal(_mark))


@trade.command("show")
@click.argument("trade_id", type=int)
def show(trade_id: int) -> None:
    """Show a trade and its metrics."""

    async def _show(journal):
        return await _with_symbol(journal, await journal.get_trade(trade_id))

    _show_trade(*run_with_journal(_show))


@trade.command("list")
@click.option("--symbol", default=None, help="Only trades for this ticker.")
@click.option(
    "--status",
    type=click.Choice(["open", "partial", "closed"]),
    default=None,
)
def list_trades(symbol: Optional[str], status: Optional[str]) -> None:
    """List trades, most recent entry first."""

    async def _list(journal):
        ticker_id = await resolve_ticker(journal, symbol) if symbol else None
        trades = await journal.list_trades(ticker_id=ticker_id, status=status)
        symbols = {t.id: t.symbol for t in await journal.list_tickers()}
        return trades, symbols

    trades, symbols = run_with_journal(_list)

    if not trades:
        console.print(Panel(
            "[dim]No trades found[/dim]",
            title="[bold]Trades[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Trades", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Date")
    table.add_column("Symbol", style="bold")
    table.add_column("Side")
    table.add_column("Status")
    table.add_column("Shares", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("P/L", justify="right")
    table.add_column("R", justify="right")

    total_pnl = 0.0
    for t in trades:
        table.add_row(
            str(t.id),
            t.entry_date.strftime("%Y-%m-%d"),
            symbols.get(t.ticker, str(t.ticker)),
            t.direction,
            t.status,
            f"{t.shares:g}" if t.shares is not None else "-",
            f"{t.entry_price:.2f}" if t.entry_price is not None else "-",
            pl_markup(t.profit_loss_amount),
            pl_markup(t.r_ratio, prefix=""),
        )
        total_pnl += t.profit_loss_amount or 0.0

    console.print(table)
    console.print(f"\n[bold]Realized P/L:[/bold] {pl_markup(total_pnl)}")


@trade.command("delete")
@click.argument("trade_id", type=int)
def delete_trade(trade_id: int) -> None:
    """Delete a trade."""
    deleted = run_with_journal(lambda journal: journal.delete_trade(trade_id))
    console.print(f"[green]✓[/green] Deleted trade {deleted.id}")
