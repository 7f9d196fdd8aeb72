"""Performance statistics and user preference commands."""

from datetime import datetime
from typing import Optional

import click
from rich.panel import Panel

from tradejournal.cli.common import console, pl_markup, resolve_ticker, run_with_journal
from tradejournal.models import TradeStats


def _stats_text(stats: TradeStats) -> str:
    normalized = stats.normalized
    return (
        f"[bold]Trades:[/bold] {stats.total_trades} "
        f"[dim]({stats.closed_count} closed, {stats.partial_count} partial)[/dim]\n"
        f"Wins: {stats.winning_trades} | Losses: {stats.losing_trades} | "
        f"Break-even: {stats.break_even_trades}\n"
        f"Batting average: {stats.batting_average:.1f}%\n"
        f"{'─' * 40}\n"
        f"Total P/L:        {pl_markup(stats.total_profit_loss)} "
        f"({pl_markup(stats.total_profit_loss_percent, '%', prefix='')})\n"
        f"Avg win / loss:   {pl_markup(stats.average_win_percent, '%', prefix='')} / "
        f"{pl_markup(stats.average_loss_percent, '%', prefix='')}\n"
        f"Win/loss ratio:   {stats.win_loss_ratio:.2f} "
        f"[dim](adjusted {stats.adjusted_win_loss_ratio:.2f})[/dim]\n"
        f"Max gain / loss:  {pl_markup(stats.max_gain_percent, '%', prefix='')} / "
        f"{pl_markup(stats.max_loss_percent, '%', prefix='')} "
        f"[dim](ratio {stats.max_gain_loss_ratio:.2f})[/dim]\n"
        f"Average R:        {pl_markup(stats.average_r_ratio, prefix='')}\n"
        f"Profit factor:    {stats.profit_factor:.2f}\n"
        f"Expectancy:       {pl_markup(stats.expectancy, '%', prefix='')}\n"
        f"Days held:        {stats.average_days_held_winners:.1f} winners / "
        f"{stats.average_days_held_losers:.1f} losers\n"
        f"{'─' * 40}\n"
        f"[bold]Normalized[/bold]\n"
        f"Total P/L:        {pl_markup(normalized.total_profit_loss)} "
        f"({pl_markup(normalized.total_profit_loss_percent, '%', prefix='')})\n"
        f"Average R:        {pl_markup(normalized.average_r_ratio, prefix='')}\n"
        f"Win/loss ratio:   {normalized.win_loss_ratio:.2f} "
        f"[dim](adjusted {normalized.adjusted_win_loss_ratio:.2f})[/dim]\n"
        f"Profit factor:    {normalized.profit_factor:.2f}\n"
        f"Expectancy:       {pl_markup(normalized.expectancy, '%', prefix='')}"
    )


@click.command()
@click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="From entry date.")
@click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), default=None, help="To entry date.")
@click.option("--symbol", default=None, help="Only trades for this ticker.")
@click.option(
    "--closed-only",
    is_flag=True,
    default=False,
    help="Exclude partially closed trades.",
)
def stats(
    start: Optional[datetime],
    end: Optional[datetime],
    symbol: Optional[str],
    closed_only: bool,
) -> None:
    """Show performance statistics for closed and partial trades.

    \b
    Examples:
      tradejournal stats
      tradejournal stats --start 2024-01-01 --end 2024-06-30
      tradejournal stats --symbol AAPL --closed-only
    """

    async def _stats(journal):
        ticker_id = await resolve_ticker(journal, symbol) if symbol else None
        return await journal.trade_stats(
            start=start.date() if start else None,
            end=end.date() if end else None,
            ticker_id=ticker_id,
            closed_only=closed_only,
        )

    result = run_with_journal(_stats)

    if result.total_trades == 0:
        console.print(Panel(
            "[dim]No closed trades found[/dim]",
            title="[bold]Stats[/bold]",
            border_style="dim",
        ))
        return

    console.print(Panel(
        _stats_text(result),
        title="[bold cyan]Stats[/bold cyan]",
        border_style="cyan",
    ))


@click.group()
def prefs() -> None:
    """Manage users and their preferences."""


@prefs.command("add-user")
@click.argument("email")
@click.option("--name", default=None, help="Display name.")
def add_user(email: str, name: Optional[str]) -> None:
    """Add a user."""
    created = run_with_journal(lambda journal: journal.create_user(email, name=name))
    console.print(f"[green]✓[/green] Added user [bold]{created.email}[/bold] (id {created.id})")


@prefs.command("show")
@click.argument("user_id", type=int)
def show(user_id: int) -> None:
    """Show a user's preferences."""
    user = run_with_journal(lambda journal: journal.get_user(user_id))
    p = user.preferences
    console.print(Panel(
        f"[bold]{user.name or user.email}[/bold]\n\n"
        f"Target position size: ${p.target_position_size:,.2f}\n"
        f"Stats timeframe:      {p.default_timeframe}\n"
        f"Chart view:           {p.default_chart_view}",
        title="[bold cyan]Preferences[/bold cyan]",
        border_style="cyan",
    ))


@prefs.command("target-size")
@click.argument("user_id", type=int)
@click.argument("size", type=float)
def target_size(user_id: int, size: float) -> None:
    """Set a user's standard position size.

    Trades already journaled keep the size they were created with.
    """
    user = run_with_journal(lambda journal: journal.set_target_position_size(user_id, size))
    console.print(
        f"[green]✓[/green] Target position size for {user.email}: "
        f"${user.preferences.target_position_size:,.2f}"
    )
