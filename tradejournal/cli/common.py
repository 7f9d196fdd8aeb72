"""Shared helpers for CLI commands."""

import asyncio
from typing import Awaitable, Callable, TypeVar

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from tradejournal.config import load_config
from tradejournal.db import DuplicateRecordError, RecordNotFoundError
from tradejournal.journal import Journal
from tradejournal.metrics import ExitSharesExceededError
from tradejournal.utils import setup_logging

console = Console()

T = TypeVar("T")


def error_panel(message: str) -> None:
    console.print(Panel(
        f"[red]{message}[/red]",
        title="[bold red]Error[/bold red]",
        border_style="red",
    ))


def pl_markup(value: float | None, suffix: str = "", prefix: str = "$") -> str:
    """Color a P/L figure green or red."""
    if value is None:
        return "-"
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else ""
    return f"[{color}]{sign}{prefix}{value:,.2f}{suffix}[/{color}]"


def run_with_journal(action: Callable[[Journal], Awaitable[T]]) -> T:
    """Run an async action against a started journal.

    Pending aggregate updates are flushed before returning. Journal errors
    are shown as a red panel and exit with status 1.
    """
    config = load_config()
    setup_logging(config.log_level, config.log_file)

    async def _main() -> T:
        async with Journal.from_config(config) as journal:
            return await action(journal)

    try:
        return asyncio.run(_main())
    except (
        RecordNotFoundError,
        DuplicateRecordError,
        ExitSharesExceededError,
        ValidationError,
    ) as e:
        error_panel(str(e))
        raise SystemExit(1)


async def resolve_ticker(journal: Journal, symbol: str) -> int:
    """Look up a ticker ID by symbol."""
    ticker = await journal.get_ticker_by_symbol(symbol)
    if ticker is None:
        raise click.ClickException(
            f"Unknown ticker '{symbol.upper()}'. Add it with: tradejournal ticker add"
        )
    return ticker.id
