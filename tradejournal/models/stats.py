"""Trade statistics data models."""

from pydantic import BaseModel, Field


class NormalizedStats(BaseModel):
    """Statistics computed from position-size-normalized metrics."""

    total_profit_loss: float = 0.0
    total_profit_loss_percent: float = 0.0
    average_r_ratio: float = 0.0
    profit_factor: float = 0.0
    max_gain_percent: float = 0.0
    max_loss_percent: float = 0.0
    max_gain_loss_ratio: float = 0.0
    average_win_percent: float = 0.0
    average_loss_percent: float = 0.0
    win_loss_ratio: float = 0.0
    adjusted_win_loss_ratio: float = 0.0
    expectancy: float = 0.0

    model_config = {"frozen": True}


class TradeStats(BaseModel):
    """Performance statistics over a set of closed and partial trades."""

    total_trades: int = Field(default=0, ge=0)
    winning_trades: int = Field(default=0, ge=0)
    losing_trades: int = Field(default=0, ge=0)
    break_even_trades: int = Field(default=0, ge=0)
    batting_average: float = Field(default=0.0, ge=0, le=100, description="Win rate (%)")
    average_win_percent: float = 0.0
    average_loss_percent: float = 0.0
    win_loss_ratio: float = 0.0
    adjusted_win_loss_ratio: float = 0.0
    average_r_ratio: float = 0.0
    profit_factor: float = 0.0
    expectancy: float = 0.0
    average_days_held_winners: float = 0.0
    average_days_held_losers: float = 0.0
    max_gain_percent: float = 0.0
    max_loss_percent: float = 0.0
    max_gain_loss_ratio: float = 0.0
    total_profit_loss: float = 0.0
    total_profit_loss_percent: float = 0.0
    closed_count: int = Field(default=0, ge=0)
    partial_count: int = Field(default=0, ge=0)
    normalized: NormalizedStats = Field(default_factory=NormalizedStats)

    model_config = {"frozen": True}
