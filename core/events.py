"""
Event Models for Frame Enhancer

Pydantic models representing UI events and data contracts.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from core.models import GenderFilter


class UIEvent(BaseModel):
    """Base class for all UI-triggered events."""

    model_config = ConfigDict(validate_assignment=True, extra="ignore", str_strip_whitespace=True)


class ExtractionEvent(UIEvent):
    """
    Data model for frame extraction requests.

    ``end_time`` of None means the segment runs to the end of the video.
    """

    video_path: str
    start_time: float = 0.0
    end_time: Optional[float] = None
    fps: int = 4
    gender: GenderFilter = GenderFilter.ALL

    @field_validator("video_path")
    @classmethod
    def validate_video_path(cls, v: str) -> str:
        if not v:
            raise ValueError("Please upload a video.")
        return v

    @field_validator("fps")
    @classmethod
    def validate_fps(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Frames per second must be a positive integer.")
        return v

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Start time cannot be negative.")
        return v

    @model_validator(mode="before")
    @classmethod
    def blank_end_time(cls, data):
        # Gradio number boxes submit "" or None for an empty field
        if isinstance(data, dict) and data.get("end_time") in ("", None):
            data = {**data, "end_time": None}
        return data


class EnhancementEvent(UIEvent):
    """Data model for enhancement requests over the current selection."""

    colorize: bool = True
