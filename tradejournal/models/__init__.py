"""Data models for the trade journal."""

from tradejournal.models.chart import Chart, ChartNotes, Measurement
from tradejournal.models.stats import NormalizedStats, TradeStats
from tradejournal.models.tag import TAG_COLORS, Tag
from tradejournal.models.ticker import Ticker
from tradejournal.models.trade import (
    CurrentMetrics,
    NormalizedMetrics,
    StopRevision,
    Trade,
    TradeExit,
)
from tradejournal.models.user import User, UserPreferences

__all__ = [
    "Chart",
    "ChartNotes",
    "CurrentMetrics",
    "Measurement",
    "NormalizedMetrics",
    "NormalizedStats",
    "StopRevision",
    "TAG_COLORS",
    "Tag",
    "Ticker",
    "Trade",
    "TradeExit",
    "TradeStats",
    "User",
    "UserPreferences",
]
