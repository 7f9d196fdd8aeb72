"""Trade data model."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

TradeDirection = Literal["long", "short"]
TradeStatus = Literal["open", "partial", "closed"]
ExitReason = Literal["strength", "stop", "backstop", "violation", "other"]
SetupType = Literal["breakout", "pullback", "reversal", "gap", "other"]


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class StopRevision(BaseModel):
    """A change to the stop loss after entry."""

    price: float = Field(..., description="Revised stop price")
    date: datetime = Field(default_factory=datetime.now, description="When the stop was moved")
    notes: Optional[str] = Field(default=None, description="Reason for the change")

    model_config = {"frozen": True}

    @field_validator("date")
    @classmethod
    def localize_date(cls, value: datetime) -> datetime:
        return to_local_naive(value)


class TradeExit(BaseModel):
    """A partial or full exit from a position."""

    price: float = Field(..., description="Exit price")
    shares: float = Field(..., ge=0, description="Shares/contracts exited")
    date: datetime = Field(default_factory=datetime.now, description="Date of exit")
    reason: Optional[ExitReason] = Field(default=None, description="Why the exit was taken")
    notes: Optional[str] = Field(default=None, description="Exit notes")

    model_config = {"frozen": True}

    @field_validator("date")
    @classmethod
    def localize_date(cls, value: datetime) -> datetime:
        return to_local_naive(value)


class CurrentMetrics(BaseModel):
    """Mark-to-market metrics for open and partially closed positions."""

    profit_loss_amount: float = Field(..., description="Realized plus unrealized P/L ($)")
    profit_loss_percent: float = Field(..., description="Current P/L (%) of the full position")
    risk_amount: float = Field(..., ge=0, description="Dollars at risk to the active stop")
    risk_percent: float = Field(..., ge=0, description="Risk to the active stop (%)")
    r_ratio: float = Field(..., description="Current P/L over initial risk")
    break_even_shares: float = Field(
        ..., ge=0, description="Shares to sell now to break even if stopped out"
    )
    last_updated: datetime = Field(..., description="When these metrics were computed")

    model_config = {"frozen": True}


class NormalizedMetrics(BaseModel):
    """Metrics scaled to the trader's standard position size."""

    profit_loss_amount: float = Field(..., description="Normalized P/L ($)")
    profit_loss_percent: float = Field(..., description="Normalized P/L (%)")
    r_ratio: Optional[float] = Field(default=None, description="Normalized R-ratio")

    model_config = {"frozen": True}


class Trade(BaseModel):
    """Represents a journaled trade and its derived metrics.

    Entry price, shares and initial stop are optional at the model level so
    that incomplete drafts can be stored; the metrics calculator leaves such
    trades untouched.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    ticker: int = Field(..., description="Ticker ID")
    direction: TradeDirection = Field(default="long", description="Long or short")
    entry_date: datetime = Field(default_factory=datetime.now, description="Date of entry")
    entry_price: Optional[float] = Field(default=None, description="Price at entry")
    shares: Optional[float] = Field(default=None, description="Number of shares/contracts")
    initial_stop_loss: Optional[float] = Field(default=None, description="Initial stop price")
    setup_type: Optional[SetupType] = Field(default=None, description="Type of setup")
    modified_stops: list[StopRevision] = Field(default_factory=list, description="Stop revisions")
    exits: list[TradeExit] = Field(default_factory=list, description="Exit events")
    status: TradeStatus = Field(default="open", description="Derived from exits")
    current_price: Optional[float] = Field(default=None, description="Current mark price")
    notes: Optional[str] = Field(default=None, description="Trade notes and rationale")
    related_charts: list[int] = Field(default_factory=list, description="Chart IDs")
    target_position_size: Optional[float] = Field(
        default=None, description="Standard position size captured at creation"
    )

    # Derived fields
    position_size: Optional[float] = Field(default=None, description="Entry price x shares")
    risk_amount: Optional[float] = Field(default=None, description="Initial risk ($)")
    risk_percent: Optional[float] = Field(default=None, description="Initial risk (%)")
    profit_loss_amount: Optional[float] = Field(default=None, description="Realized P/L ($)")
    profit_loss_percent: Optional[float] = Field(default=None, description="Realized P/L (%)")
    r_ratio: Optional[float] = Field(default=None, description="Realized R-multiple")
    days_held: Optional[int] = Field(default=None, description="Days held")
    current_metrics: Optional[CurrentMetrics] = Field(default=None)
    normalized_metrics: Optional[NormalizedMetrics] = Field(default=None)
    normalization_factor: Optional[float] = Field(
        default=None, description="Position size / target position size"
    )

    model_config = {"frozen": True}

    @field_validator("entry_date")
    @classmethod
    def localize_entry_date(cls, value: datetime) -> datetime:
        return to_local_naive(value)

    @property
    def exited_shares(self) -> float:
        """Total shares exited so far."""
        return sum(exit_.shares for exit_ in self.exits)

    @property
    def remaining_shares(self) -> float:
        """Shares still held."""
        return (self.shares or 0) - self.exited_shares

    @property
    def is_long(self) -> bool:
        return self.direction == "long"
