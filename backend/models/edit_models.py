"""
Pydantic models for Shotstack edit payloads.

This module implements the declarative render request sent to the render
engine:
- Edit -> Timeline -> Tracks -> Clips -> Asset
- Asset variants as a discriminated union on ``type``
- Output settings (format, resolution, aspect ratio)

Models serialise with camelCase aliases and drop unset fields, which is the
shape the render API expects. Unknown vendor fields are kept so custom edits
pass through untouched.

Reference: https://shotstack.io/docs/api/
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ShotstackModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_payload(self) -> dict[str, Any]:
        """Dump in wire form: camelCase keys, no unset values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# ENUMS
# =============================================================================


class AssetType(str, Enum):
    VIDEO = "video"
    IMAGE = "image"
    TITLE = "title"
    HTML = "html"
    AUDIO = "audio"
    LUMA = "luma"


KNOWN_ASSET_TYPES = frozenset(asset_type.value for asset_type in AssetType)


class Fit(str, Enum):
    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"
    NONE = "none"


class AudioEffect(str, Enum):
    FADE_IN = "fadeIn"
    FADE_OUT = "fadeOut"
    FADE_IN_FADE_OUT = "fadeInFadeOut"


class OutputFormat(str, Enum):
    MP4 = "mp4"
    GIF = "gif"
    WEBM = "webm"
    JPG = "jpg"
    PNG = "png"
    BMP = "bmp"
    MP3 = "mp3"


class Resolution(str, Enum):
    PREVIEW = "preview"
    MOBILE = "mobile"
    SD = "sd"
    HD = "hd"
    FULL_HD = "full-hd"


class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"
    SQUARE = "1:1"
    VERTICAL = "4:5"
    CLASSIC = "4:3"


# =============================================================================
# ASSETS
# =============================================================================


class Crop(ShotstackModel):
    top: float | None = None
    bottom: float | None = None
    left: float | None = None
    right: float | None = None


class VideoAsset(ShotstackModel):
    type: Literal["video"] = "video"
    src: str
    trim: float | None = None
    volume: float | None = Field(default=None, ge=0)
    speed: float | None = Field(default=None, gt=0)
    crop: Crop | None = None


class ImageAsset(ShotstackModel):
    type: Literal["image"] = "image"
    src: str
    crop: Crop | None = None


class TitleAsset(ShotstackModel):
    type: Literal["title"] = "title"
    text: str
    style: str | None = None
    color: str | None = None
    size: str | None = None
    background: str | None = None
    position: str | None = None


class HtmlAsset(ShotstackModel):
    type: Literal["html"] = "html"
    html: str
    css: str | None = None
    width: int | None = None
    height: int | None = None
    background: str | None = None
    position: str | None = None


class AudioAsset(ShotstackModel):
    type: Literal["audio"] = "audio"
    src: str
    trim: float | None = None
    volume: float | None = Field(default=None, ge=0, le=1)
    effect: AudioEffect | None = None


class LumaAsset(ShotstackModel):
    type: Literal["luma"] = "luma"
    src: str


Asset = Annotated[
    Union[VideoAsset, ImageAsset, TitleAsset, HtmlAsset, AudioAsset, LumaAsset],
    Field(discriminator="type"),
]


# =============================================================================
# CLIPS, TRACKS, TIMELINE
# =============================================================================


class Transition(ShotstackModel):
    in_: str | None = Field(default=None, alias="in")
    out: str | None = None

    @classmethod
    def both(cls, name: str) -> Transition:
        return cls(in_=name, out=name)


class Offset(ShotstackModel):
    x: float | None = None
    y: float | None = None


class Clip(ShotstackModel):
    asset: Asset
    start: float = Field(ge=0, description="Start time on the timeline in seconds")
    length: float = Field(gt=0, description="Clip length in seconds")
    fit: Fit | None = None
    transition: Transition | None = None
    scale: float | None = None
    position: str | None = None
    offset: Offset | None = None
    opacity: float | None = Field(default=None, ge=0, le=1)

    @property
    def end(self) -> float:
        return self.start + self.length


class Track(ShotstackModel):
    clips: list[Clip] = Field(default_factory=list)

    def duration(self) -> float:
        """End of the last clip on this track."""
        if not self.clips:
            return 0.0
        return max(clip.end for clip in self.clips)


class Soundtrack(ShotstackModel):
    src: str
    effect: AudioEffect | None = None
    volume: float | None = Field(default=None, ge=0, le=1)


class Timeline(ShotstackModel):
    tracks: list[Track] = Field(default_factory=list)
    background: str | None = "#000000"
    soundtrack: Soundtrack | None = None

    def find_clips(self) -> list[Clip]:
        return [clip for track in self.tracks for clip in track.clips]

    def duration(self) -> float:
        if not self.tracks:
            return 0.0
        return max(track.duration() for track in self.tracks)


class Output(ShotstackModel):
    format: OutputFormat = OutputFormat.MP4
    resolution: Resolution | None = None
    aspect_ratio: AspectRatio | None = None
    fps: float | None = None
    quality: Literal["low", "medium", "high"] | None = None


class MergeField(ShotstackModel):
    find: str
    replace: str | int | float | bool


class Edit(ShotstackModel):
    timeline: Timeline
    output: Output = Field(default_factory=Output)
    merge: list[MergeField] | None = None
    callback: str | None = None

    @property
    def clip_count(self) -> int:
        return len(self.timeline.find_clips())
