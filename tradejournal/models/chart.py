"""Chart data model."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

Timeframe = Literal["daily", "weekly", "monthly", "intraday", "other"]


class ChartNotes(BaseModel):
    """Categorized notes about a chart."""

    setup_entry: str = Field(default="", description="Setup and entry points")
    trend: str = Field(default="", description="Overall trend")
    fundamentals: str = Field(default="", description="Fundamental analysis")
    other: str = Field(default="", description="Anything else")

    model_config = {"frozen": True}


class Measurement(BaseModel):
    """A price move measured on a chart."""

    name: str = Field(..., min_length=1, description="e.g. Pullback, Breakout")
    start_price: float = Field(..., description="Starting price point")
    end_price: float = Field(..., description="Ending price point")
    percentage_change: Optional[float] = Field(default=None, description="Calculated % change")

    model_config = {"frozen": True}


class Chart(BaseModel):
    """Represents a captured stock chart."""

    id: Optional[int] = Field(default=None, description="Database ID")
    ticker: int = Field(..., description="Ticker ID")
    timestamp: datetime = Field(default_factory=datetime.now, description="When captured")
    timeframe: Timeframe = Field(default="daily", description="Chart timeframe")
    image: Optional[str] = Field(default=None, description="Chart screenshot path")
    annotated_image: Optional[str] = Field(default=None, description="Annotated version path")
    notes: ChartNotes = Field(default_factory=ChartNotes)
    tags: list[int] = Field(default_factory=list, description="Tag IDs")
    measurements: list[Measurement] = Field(default_factory=list)
    nav_index: Optional[int] = Field(
        default=None, description="Sequential index for next/previous navigation"
    )
    display_title: Optional[str] = Field(default=None, description="Generated title")

    model_config = {"frozen": True}
