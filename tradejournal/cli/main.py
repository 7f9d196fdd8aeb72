"""Command-line entry point for the trade journal.

Command groups live in their own modules and are imported on first use,
so ``tradejournal --help`` never opens the database or loads rich tables.
"""

import importlib

import click


class LazyGroup(click.Group):
    """Root group that resolves subcommands from ``module:attribute`` paths.

    Several commands share a module (``ticker`` and ``tag``, ``stats`` and
    ``prefs``), so each name points at the exact object to load.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        return sorted(set(super().list_commands(ctx)) | set(self._lazy_subcommands))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        if cmd_name not in self.commands and cmd_name in self._lazy_subcommands:
            self.add_command(self._load(cmd_name), cmd_name)
        return self.commands.get(cmd_name)

    def _load(self, cmd_name: str) -> click.Command:
        module_path, _, attr_name = self._lazy_subcommands[cmd_name].partition(":")
        command = getattr(importlib.import_module(module_path), attr_name, None)
        if not isinstance(command, click.Command):
            raise click.ClickException(
                f"'{cmd_name}' does not resolve to a command ({module_path}:{attr_name})"
            )
        return command


LAZY_SUBCOMMANDS = {
    "ticker": "tradejournal.cli.tickers:ticker",
    "tag": "tradejournal.cli.tickers:tag",
    "chart": "tradejournal.cli.charts:chart",
    "trade": "tradejournal.cli.trades:trade",
    "stats": "tradejournal.cli.stats:stats",
    "prefs": "tradejournal.cli.stats:prefs",
}

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="tradejournal")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Trade Journal - track charts, trades and performance.

    \b
    Quick Start:
      tradejournal ticker add AAPL "Apple Inc."
      tradejournal trade add AAPL --entry 187.5 --shares 100 --stop 182
      tradejournal trade exit 1 --price 195 --shares 50
      tradejournal stats
    """
    ctx.ensure_object(dict)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
