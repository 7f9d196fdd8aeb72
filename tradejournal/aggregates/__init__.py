"""Ticker and tag aggregate maintenance."""

from tradejournal.aggregates.coordinator import (
    AggregateCoordinator,
    RecomputeJob,
    RefreshResult,
)

__all__ = [
    "AggregateCoordinator",
    "RecomputeJob",
    "RefreshResult",
]
