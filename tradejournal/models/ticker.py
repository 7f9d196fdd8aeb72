"""Ticker data model."""

from typing import Optional

from pydantic import BaseModel, Field


class Ticker(BaseModel):
    """Represents a stock ticker and its denormalized aggregates.

    ``tags``, ``charts_count``, ``trades_count`` and ``profit_loss`` are
    maintained by the aggregate coordinator and never authored directly.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    symbol: str = Field(..., min_length=1, description="Ticker symbol (e.g., AAPL)")
    name: str = Field(..., min_length=1, description="Full company name")
    description: Optional[str] = Field(default=None, description="Company description")
    sector: Optional[str] = Field(default=None, description="Industry sector")
    tags: list[int] = Field(default_factory=list, description="Tag IDs across all charts")
    charts_count: int = Field(default=0, ge=0, description="Number of charts")
    trades_count: int = Field(default=0, ge=0, description="Number of trades")
    profit_loss: float = Field(default=0.0, description="Total realized P/L")

    model_config = {"frozen": True}
