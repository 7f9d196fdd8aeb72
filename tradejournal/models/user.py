"""User and preferences data models."""

from typing import Literal, Optional

from pydantic import BaseModel, Field


class UserPreferences(BaseModel):
    """Per-user journal preferences."""

    default_timeframe: Literal["all", "year", "month", "week", "last30"] = Field(
        default="month", description="Default stats timeframe"
    )
    default_chart_view: Literal["grid", "list", "timeline"] = Field(
        default="grid", description="Default chart view"
    )
    target_position_size: float = Field(
        default=25000.0, gt=0, description="Standard position size in dollars"
    )

    model_config = {"frozen": True}


class User(BaseModel):
    """Represents a journal user."""

    id: Optional[int] = Field(default=None, description="Database ID")
    name: Optional[str] = Field(default=None, description="Display name")
    email: str = Field(..., min_length=3, description="Email address")
    preferences: UserPreferences = Field(default_factory=UserPreferences)

    model_config = {"frozen": True}
