"""Tag data model."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

TagColor = Literal[
    "#FF5252",  # red
    "#4CAF50",  # green
    "#2196F3",  # blue
    "#FFEB3B",  # yellow
    "#9C27B0",  # purple
    "#FF9800",  # orange
    "#009688",  # teal
    "#E91E63",  # pink
    "#9E9E9E",  # gray
]

TAG_COLORS: dict[str, str] = {
    "red": "#FF5252",
    "green": "#4CAF50",
    "blue": "#2196F3",
    "yellow": "#FFEB3B",
    "purple": "#9C27B0",
    "orange": "#FF9800",
    "teal": "#009688",
    "pink": "#E91E63",
    "gray": "#9E9E9E",
}


class Tag(BaseModel):
    """Represents a chart tag."""

    id: Optional[int] = Field(default=None, description="Database ID")
    name: str = Field(..., min_length=1, description="Tag name")
    description: Optional[str] = Field(default=None, description="Tag description")
    color: TagColor = Field(default="#9E9E9E", description="Display color")
    charts_count: int = Field(default=0, ge=0, description="Number of charts using this tag")

    model_config = {"frozen": True}
