from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ffrender.schemas.effects import Effects, OutputOptions, SubtitleAnimation, TextOverlay


class TimelineEntry(BaseModel):
    """One segment of a timeline composition. Immutable once submitted."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["video", "audio", "subtitle"]
    url: str | None = None
    start: float = Field(default=0.0, ge=0)
    end: float | None = Field(default=None, ge=0)
    text: str | None = None
    style: SubtitleAnimation | None = None

    @model_validator(mode="after")
    def check_entry(self) -> "TimelineEntry":
        if self.type in ("video", "audio") and not self.url:
            raise ValueError(f"{self.type} entry requires a url")
        if self.type == "video" and self.end is None:
            raise ValueError("video entry requires an end time")
        if self.end is not None and self.end <= self.start:
            raise ValueError("end must be greater than start")
        return self


class RenderRequest(BaseModel):
    """Job submission. Either ``timeline`` or ``video_url`` + ``audio_url``.

    Presence checks live in the API layer so they surface as
    ValidationError with the same messages regardless of which field is
    missing.
    """

    job_id: str | None = None
    project_id: str | None = None
    callback_url: str | None = None

    # Timeline mode
    timeline: list[TimelineEntry] | None = None
    output: OutputOptions | None = None

    # Flat mode
    video_url: str | None = None
    audio_url: str | None = None
    effects: Effects = Field(default_factory=Effects)
    text_overlay: str | TextOverlay | None = None
    subtitle_url: str | None = None
    subtitle_content: str | None = None

    @property
    def is_timeline(self) -> bool:
        return bool(self.timeline)


class RenderAccepted(BaseModel):
    job_id: str
    status: str
    message: str = "Render job accepted"


class JobStatusResponse(BaseModel):
    job_id: str
    project_id: str | None
    status: str
    progress: int
    video_url: str | None = None
    download_url: str | None = None
    metadata: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime
