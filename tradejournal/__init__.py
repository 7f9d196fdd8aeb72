"""Trade journal: charts, trades, performance metrics and ticker aggregates."""

__version__ = "0.1.0"
