"""Chart commands for the trade journal CLI."""

from datetime import datetime
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from tradejournal.cli.common import console, resolve_ticker, run_with_journal
from tradejournal.models import Chart


def _show_chart(chart: Optional[Chart]) -> None:
    if chart is None:
        console.print("[dim]No charts to navigate[/dim]")
        return

    lines = [f"[bold]{chart.display_title or f'ID:{chart.id}'}[/bold]"]
    if chart.image:
        lines.append(f"Image: {chart.image}")
    if chart.tags:
        lines.append(f"Tags: {', '.join(str(t) for t in chart.tags)}")
    for m in chart.measurements:
        change = f"{m.percentage_change:+.2f}%" if m.percentage_change is not None else "-"
        lines.append(f"{m.name}: {m.start_price:.2f} → {m.end_price:.2f} ({change})")
    for label, note in (
        ("Setup/Entry", chart.notes.setup_entry),
        ("Trend", chart.notes.trend),
        ("Fundamentals", chart.notes.fundamentals),
        ("Other", chart.notes.other),
    ):
        if note:
            lines.append(f"[dim]{label}:[/dim] {note}")
    lines.append(f"[dim]nav #{chart.nav_index}[/dim]")

    console.print(Panel("\n".join(lines), title="[bold cyan]Chart[/bold cyan]", border_style="cyan"))


@click.group()
def chart() -> None:
    """Capture and browse charts."""


@chart.command("add")
@click.argument("symbol")
@click.option(
    "--timeframe",
    type=click.Choice(["daily", "weekly", "monthly", "intraday", "other"]),
    default="daily",
    show_default=True,
)
@click.option("--image", default=None, help="Path to the chart screenshot.")
@click.option("--date", "timestamp", type=click.DateTime(), default=None, help="Capture date.")
@click.option("--tag", "tag_names", multiple=True, help="Tag name (repeatable).")
@click.option("--setup", default="", help="Setup / entry notes.")
@click.option("--trend", default="", help="Trend notes.")
@click.option(
    "--measure",
    "measures",
    multiple=True,
    type=(str, float, float),
    help="Measurement as NAME START END (repeatable).",
)
def add_chart(
    symbol: str,
    timeframe: str,
    image: Optional[str],
    timestamp: Optional[datetime],
    tag_names: tuple[str, ...],
    setup: str,
    trend: str,
    measures: tuple[tuple[str, float, float], ...],
) -> None:
    """Add a chart for a ticker.

    \b
    Examples:
      tradejournal chart add AAPL --image ~/charts/aapl.png --tag "cup and handle"
      tradejournal chart add AAPL --measure Pullback 190 182
    """

    async def _add(journal):
        tag_ids = []
        for name in tag_names:
            found = await journal.get_tag_by_name(name)
            if found is None:
                raise click.ClickException(f"Unknown tag '{name}'")
            tag_ids.append(found.id)

        data = {
            "ticker": await resolve_ticker(journal, symbol),
            "timeframe": timeframe,
            "image": image,
            "tags": tag_ids,
            "notes": {"setup_entry": setup, "trend": trend},
            "measurements": [
                {"name": name, "start_price": start, "end_price": end}
                for name, start, end in measures
            ],
        }
        if timestamp is not None:
            data["timestamp"] = timestamp
        return await journal.create_chart(data)

    _show_chart(run_with_journal(_add))


@chart.command("list")
@click.option("--symbol", default=None, help="Only charts for this ticker.")
@click.option("--timeframe", default=None, help="Only charts with this timeframe.")
@click.option("--tag", "tag_name", default=None, help="Only charts with this tag.")
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--limit", type=int, default=20, show_default=True)
def list_charts(
    symbol: Optional[str],
    timeframe: Optional[str],
    tag_name: Optional[str],
    page: int,
    limit: int,
) -> None:
    """List charts, newest first."""

    async def _list(journal):
        if symbol:
            return await journal.ticker_charts(await resolve_ticker(journal, symbol))
        if tag_name:
            found = await journal.get_tag_by_name(tag_name)
            if found is None:
                raise click.ClickException(f"Unknown tag '{tag_name}'")
            return await journal.charts_by_tag(found.id, page=page, limit=limit)
        if timeframe:
            return await journal.charts_by_timeframe(timeframe, page=page, limit=limit)
        return await journal.list_charts(page=page, limit=limit)

    charts = run_with_journal(_list)

    table = Table(title="Charts", show_header=True, header_style="bold cyan")
    table.add_column("Title", style="bold")
    table.add_column("Tags", style="dim")
    table.add_column("Nav", justify="right", style="dim")

    for c in charts:
        table.add_row(c.display_title or str(c.id), ", ".join(map(str, c.tags)) or "-", str(c.nav_index))

    console.print(table)


@chart.command("next")
@click.argument("chart_id", type=int)
def next_chart(chart_id: int) -> None:
    """Show the chart after CHART_ID (wraps around)."""
    _show_chart(run_with_journal(lambda journal: journal.next_chart(chart_id)))


@chart.command("prev")
@click.argument("chart_id", type=int)
def previous_chart(chart_id: int) -> None:
    """Show the chart before CHART_ID (wraps around)."""
    _show_chart(run_with_journal(lambda journal: journal.previous_chart(chart_id)))


@chart.command("delete")
@click.argument("chart_id", type=int)
def delete_chart(chart_id: int) -> None:
    """Delete a chart."""
    deleted = run_with_journal(lambda journal: journal.delete_chart(chart_id))
    console.print(f"[green]✓[/green] Deleted chart {deleted.id}")
