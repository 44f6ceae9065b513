"""
Pydantic models for video rendering functionality.

This module defines request/response schemas for:
- Render submission (raw video URLs, templates, custom edits)
- Render job status tracking and webhook callbacks
- Media probing, ingestion and asset status
- API sessions that identify the owner of render jobs
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from models.edit_models import AspectRatio, MergeField, OutputFormat, Resolution


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================


class RenderJobStatus(str, Enum):
    """Status of a render job, in lifecycle order."""

    SUBMITTED = "submitted"  # Accepted by the render API
    QUEUED = "queued"  # Waiting for a render slot
    FETCHING = "fetching"  # Downloading source media
    RENDERING = "rendering"  # Actively rendering
    DONE = "done"  # Finished, video_url available
    FAILED = "failed"  # Error occurred

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self in (RenderJobStatus.DONE, RenderJobStatus.FAILED)

    def can_advance_to(self, new_status: RenderJobStatus) -> bool:
        if self.is_terminal:
            return new_status == self
        if new_status.is_terminal:
            return True
        return new_status.rank >= self.rank

    @classmethod
    def from_vendor(cls, raw: Any) -> Any:
        """Map a render-engine status; untracked in-progress phases (saving, ...) read as rendering."""
        if isinstance(raw, cls) or not isinstance(raw, str) or not raw:
            return raw
        try:
            return cls(raw)
        except ValueError:
            return cls.RENDERING


_STATUS_ORDER = list(RenderJobStatus)


class EditType(str, Enum):
    """Which input shape produced the edit."""

    CUSTOM = "custom"
    TEMPLATE = "template"
    LEGACY = "legacy"  # Raw video URL merge


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    FACEBOOK = "facebook"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"


# =============================================================================
# REQUEST MODELS
# =============================================================================


class TemplateRef(ApiModel):
    id: str = Field(min_length=1)
    merge_fields: list[MergeField] | None = None


class TemplateOptions(ApiModel):
    """Options for template and video-merge builds. Unset values use builder defaults."""

    image_urls: list[str] = Field(default_factory=list)
    title: str | None = None
    subtitle: str | None = None
    music: str | None = None
    aspect_ratio: AspectRatio | None = None
    platform: Platform | None = None
    text_style: str | None = None
    text_color: str | None = None
    background_color: str | None = None
    duration: float | None = Field(default=None, gt=0)
    transition: str | None = None

    def has_content(self) -> bool:
        return bool(self.image_urls) or bool(self.title) or bool(self.subtitle)


class RenderRequest(ApiModel):
    """Request to render a video. Exactly one input shape is used: edit, then template, then videoUrls."""

    video_urls: list[str] | None = None
    output_format: OutputFormat = OutputFormat.MP4
    output_resolution: Resolution = Resolution.FULL_HD
    edit: dict[str, Any] | None = Field(
        default=None, description="Complete edit configuration, validated before submission"
    )
    template: TemplateRef | None = None
    project_name: str = "Untitled Project"
    template_options: TemplateOptions | None = None


class TemplateRenderRequest(ApiModel):
    template_id: str = Field(min_length=1)
    merge_fields: list[MergeField] = Field(default_factory=list)
    project_name: str = "Untitled Project"


class PictureInPictureOptions(ApiModel):
    background_url: str
    overlay_url: str
    overlay_position: str = "topRight"
    overlay_scale: float = Field(default=0.3, gt=0, le=1)
    duration: float = Field(default=10.0, gt=0)
    resolution: Resolution = Resolution.FULL_HD


class SocialMediaOptions(ApiModel):
    platform: Platform
    media_urls: list[str] = Field(min_length=1)
    title: str | None = None
    logo: str | None = None
    music: str | None = None
    primary_color: str | None = None
    secondary_color: str | None = None


class PresetRenderRequest(ApiModel):
    """Render a ready-made layout: picture-in-picture or a social media post."""

    picture_in_picture: PictureInPictureOptions | None = None
    social_media: SocialMediaOptions | None = None
    project_name: str = "Untitled Project"


class ProbeRequest(ApiModel):
    url: str


class IngestRequest(ApiModel):
    url: str
    output: OutputFormat = OutputFormat.MP4


# =============================================================================
# RENDER ENGINE RESULTS
# =============================================================================


class RenderHandle(ApiModel):
    job_id: str
    message: str | None = None


class RenderStatusSnapshot(ApiModel):
    """Latest status reported by the render engine for one job."""

    job_id: str
    status: RenderJobStatus
    url: str | None = None
    error: str | None = None
    duration: float | None = None
    render_time: float | None = None

    @field_validator("status", mode="before")
    @classmethod
    def map_vendor_status(cls, value: Any) -> Any:
        return RenderJobStatus.from_vendor(value)

    @model_validator(mode="after")
    def check_terminal_fields(self) -> RenderStatusSnapshot:
        if self.status == RenderJobStatus.DONE and not self.url:
            raise ValueError("status 'done' requires a video url")
        if self.status == RenderJobStatus.FAILED and not self.error:
            self.error = "Unknown render error"
        return self


class IngestHandle(ApiModel):
    id: str
    message: str | None = None


class AssetStatus(ApiModel):
    id: str
    status: str
    url: str | None = None
    filename: str | None = None
    bytes: int | None = None
    duration: float | None = None
    width: int | None = None
    height: int | None = None


class ProbeMetadata(ApiModel):
    """Raw ffprobe-style metadata returned by the probe endpoint."""

    url: str
    format: dict[str, Any] = Field(default_factory=dict)
    streams: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def duration(self) -> float | None:
        raw = self.format.get("duration")
        if raw is None:
            for stream in self.streams:
                if stream.get("duration") is not None:
                    raw = stream["duration"]
                    break
        try:
            return float(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None

    def summarize(self) -> MediaSummary:
        video = next((s for s in self.streams if s.get("codec_type") == "video"), None)
        audio = next((s for s in self.streams if s.get("codec_type") == "audio"), None)
        return MediaSummary(
            url=self.url,
            is_video=video is not None,
            is_audio=audio is not None,
            duration=self.duration or 0.0,
            file_size=_to_int(self.format.get("size")),
            video=VideoStreamSummary(
                width=video.get("width"),
                height=video.get("height"),
                codec=video.get("codec_name"),
                frame_rate=video.get("r_frame_rate"),
                aspect_ratio=video.get("display_aspect_ratio"),
                bit_rate=_to_int(video.get("bit_rate")),
            )
            if video
            else None,
            audio=AudioStreamSummary(
                codec=audio.get("codec_name"),
                sample_rate=_to_int(audio.get("sample_rate")),
                channels=audio.get("channels"),
                bit_rate=_to_int(audio.get("bit_rate")),
            )
            if audio
            else None,
            format_name=self.format.get("format_name"),
        )


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class VideoStreamSummary(ApiModel):
    width: int | None = None
    height: int | None = None
    codec: str | None = None
    frame_rate: str | None = None
    aspect_ratio: str | None = None
    bit_rate: int = 0


class AudioStreamSummary(ApiModel):
    codec: str | None = None
    sample_rate: int = 0
    channels: int | None = None
    bit_rate: int = 0


class MediaSummary(ApiModel):
    url: str
    is_video: bool
    is_audio: bool
    duration: float
    file_size: int
    video: VideoStreamSummary | None = None
    audio: AudioStreamSummary | None = None
    format_name: str | None = None
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WebhookPayload(ApiModel):
    """Status callback posted by the render engine."""

    id: str
    owner: str | None = None
    status: RenderJobStatus
    url: str | None = None
    error: str | None = None
    duration: float | None = None
    render_time: float | None = None

    @field_validator("status", mode="before")
    @classmethod
    def map_vendor_status(cls, value: Any) -> Any:
        return RenderJobStatus.from_vendor(value)

    def to_snapshot(self) -> RenderStatusSnapshot:
        return RenderStatusSnapshot(
            job_id=self.id,
            status=self.status,
            url=self.url,
            error=self.error,
            duration=self.duration,
            render_time=self.render_time,
        )


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class RenderSubmitResponse(ApiModel):
    success: bool = True
    job_id: str
    db_job_id: str | None = None
    estimated_duration: float
    project_name: str
    edit_type: EditType
    message: str = "Video rendering job submitted successfully"
    warning: str | None = None


class RenderStatusResponse(ApiModel):
    success: bool = True
    job_id: str
    status: RenderJobStatus
    video_url: str | None = None
    error: str | None = None
    duration: float | None = None
    render_time: float | None = None


class ProbeResponse(ApiModel):
    success: bool = True
    data: MediaSummary
    raw: ProbeMetadata


class IngestResponse(ApiModel):
    success: bool = True
    id: str
    message: str | None = None


class AssetStatusResponse(ApiModel):
    success: bool = True
    asset: AssetStatus


class WebhookAckResponse(ApiModel):
    success: bool = True
    message: str = "Webhook processed successfully"
    status: RenderJobStatus | None = None


# =============================================================================
# SESSION MODELS
# =============================================================================


class SessionCreateResponse(ApiModel):
    ok: bool = True
    session_id: str
    user_id: str
    expires_at: datetime
    session_token: str
