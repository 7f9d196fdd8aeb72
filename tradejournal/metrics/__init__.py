"""Trade metrics module."""

from tradejournal.metrics.calculator import (
    DEFAULT_TARGET_POSITION_SIZE,
    DERIVED_FIELDS,
    ExitSharesExceededError,
    active_stop,
    calculate_current_metrics,
    calculate_days_held,
    calculate_normalized_metrics,
    calculate_position_size,
    calculate_realized,
    calculate_risk,
    calculate_trade_metrics,
    derive_status,
    enrich_trade_data,
    validate_exits,
)
from tradejournal.metrics.stats import calculate_trade_stats

__all__ = [
    "DEFAULT_TARGET_POSITION_SIZE",
    "DERIVED_FIELDS",
    "ExitSharesExceededError",
    "active_stop",
    "calculate_current_metrics",
    "calculate_days_held",
    "calculate_normalized_metrics",
    "calculate_position_size",
    "calculate_realized",
    "calculate_risk",
    "calculate_trade_metrics",
    "calculate_trade_stats",
    "derive_status",
    "enrich_trade_data",
    "validate_exits",
]
