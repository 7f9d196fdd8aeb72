"""Ticker and tag commands for the trade journal CLI."""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradejournal.cli.common import console, pl_markup, resolve_ticker, run_with_journal
from tradejournal.models import TAG_COLORS


@click.group()
def ticker() -> None:
    """Manage tickers and their aggregate counts."""


@ticker.command("add")
@click.argument("symbol")
@click.argument("name")
@click.option("--sector", default=None, help="Industry sector.")
@click.option("--description", default=None, help="Brief company description.")
def add_ticker(symbol: str, name: str, sector: Optional[str], description: Optional[str]) -> None:
    """Add a ticker.

    \b
    Examples:
      tradejournal ticker add AAPL "Apple Inc." --sector Technology
    """
    created = run_with_journal(
        lambda journal: journal.create_ticker(symbol, name, description=description, sector=sector)
    )
    console.print(f"[green]✓[/green] Added [bold]{created.symbol}[/bold] (id {created.id})")


@ticker.command("list")
def list_tickers() -> None:
    """List tickers with chart/trade counts and P/L."""
    tickers = run_with_journal(lambda journal: journal.list_tickers())

    if not tickers:
        console.print(Panel(
            "[dim]No tickers found[/dim]",
            title="[bold]Tickers[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Tickers", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Symbol", style="bold")
    table.add_column("Name")
    table.add_column("Sector", style="dim")
    table.add_column("Charts", justify="right")
    table.add_column("Trades", justify="right")
    table.add_column("P/L", justify="right")

    for t in tickers:
        table.add_row(
            str(t.id),
            t.symbol,
            t.name,
            t.sector or "-",
            str(t.charts_count),
            str(t.trades_count),
            pl_markup(t.profit_loss),
        )

    console.print(table)


@ticker.command("refresh")
@click.argument("symbol", required=False)
def refresh(symbol: Optional[str]) -> None:
    """Recompute chart count, trade count and P/L now.

    Refreshes every ticker unless SYMBOL is given.
    """

    async def _refresh(journal):
        ticker_id = await resolve_ticker(journal, symbol) if symbol else None
        return await journal.refresh_ticker_counts(ticker_id)

    results = run_with_journal(_refresh)

    for result in results:
        if result.error:
            console.print(f"[red]✗[/red] {result.symbol}: {result.error}")
        else:
            console.print(
                f"[green]✓[/green] {result.symbol}: {result.charts_count} charts, "
                f"{result.trades_count} trades, P/L {pl_markup(result.profit_loss)}"
            )

    message = "Ticker counts refreshed" if symbol else "All ticker counts refreshed"
    console.print(f"\n[dim]{message} ({len(results)})[/dim]")


@click.group()
def tag() -> None:
    """Manage chart tags."""


@tag.command("add")
@click.argument("name")
@click.option(
    "--color",
    type=click.Choice(sorted(TAG_COLORS)),
    default="gray",
    show_default=True,
    help="Display color.",
)
@click.option("--description", default=None, help="Tag description.")
def add_tag(name: str, color: str, description: Optional[str]) -> None:
    """Add a tag."""
    created = run_with_journal(
        lambda journal: journal.create_tag(name, TAG_COLORS[color], description)
    )
    console.print(f"[green]✓[/green] Added tag [bold]{created.name}[/bold] (id {created.id})")


@tag.command("list")
def list_tags() -> None:
    """List tags with their chart counts."""
    tags = run_with_journal(lambda journal: journal.list_tags())

    table = Table(title="Tags", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Color")
    table.add_column("Charts", justify="right")

    for t in tags:
        table.add_row(str(t.id), t.name, f"[{t.color}]■[/{t.color}] {t.color}", str(t.charts_count))

    console.print(table)
