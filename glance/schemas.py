"""Glance schema — the acquired video record and its parts."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field, model_validator


class Platform(str, Enum):
    BILIBILI = "bilibili"
    YOUTUBE = "youtube"


class Provenance(str, Enum):
    OFFICIAL = "official"
    MACHINE_TRANSCRIBED = "machine_transcribed"
    FABRICATED = "fabricated"


def format_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS (minutes keep counting past the hour)."""
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


class TranscriptSegment(BaseModel):
    id: str
    start_time_seconds: float = Field(ge=0, allow_inf_nan=False)
    text: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_timestamp(self) -> str:
        return format_timestamp(self.start_time_seconds)


class Highlight(BaseModel):
    id: str
    title: str
    start_time_seconds: float = Field(ge=0, allow_inf_nan=False)
    end_time_seconds: float = Field(allow_inf_nan=False)
    color: str
    description: Optional[str] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "Highlight":
        if self.end_time_seconds <= self.start_time_seconds:
            raise ValueError("highlight must end after it starts")
        return self


class VideoMetadata(BaseModel):
    platform: Platform
    external_id: str
    title: str
    author: str
    duration_seconds: int = Field(default=0, ge=0)
    thumbnail_url: str = ""
    description: str = ""
    category: Optional[str] = None


class VideoRecord(BaseModel):
    platform: Platform
    external_id: str
    title: str
    author: str
    category: Optional[str] = None
    duration_seconds: int = Field(ge=0)
    thumbnail_url: str = ""
    transcript: list[TranscriptSegment] = Field(default_factory=list)
    highlights: list[Highlight] = Field(default_factory=list)
    provenance: Provenance
    transcript_truncated: bool = False  # audio was cut at the upload ceiling

    @model_validator(mode="after")
    def _check_timeline(self) -> "VideoRecord":
        starts = [s.start_time_seconds for s in self.transcript]
        if any(b < a for a, b in zip(starts, starts[1:])):
            raise ValueError("transcript start times must be non-decreasing")
        for h in self.highlights:
            if h.end_time_seconds > self.duration_seconds:
                raise ValueError(f"highlight {h.id} ends after the video")
        return self


class ChatMessage(BaseModel):
    id: str
    role: Literal["user", "model"]
    text: str
    timestamp: float
