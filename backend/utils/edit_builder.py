"""
Builders that turn render requests into Shotstack edits.

Two request shapes are built here:
- Video merge: a list of raw video URLs laid end to end
- Template: title, subtitle and images from template options

Clips on a track are laid out back to back: each clip starts where the
previous one ends. Builders never raise for missing optional values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from models.edit_models import (
    AspectRatio,
    AudioEffect,
    Clip,
    Edit,
    Fit,
    ImageAsset,
    Offset,
    Output,
    OutputFormat,
    Resolution,
    Soundtrack,
    Timeline,
    TitleAsset,
    Track,
    Transition,
    VideoAsset,
)
from models.render_models import EditType, Platform, TemplateOptions, TemplateRef

if TYPE_CHECKING:
    from utils.media_probe import MediaProber

logger = logging.getLogger(__name__)


TITLE_LENGTH_SECONDS = 2.0
SUBTITLE_MIN_LENGTH_SECONDS = 5.0
PLACEHOLDER_LENGTH_SECONDS = 3.0
DEFAULT_IMAGE_DURATION_SECONDS = 3.0
DEFAULT_TRANSITION = "fade"
DEFAULT_TEXT_STYLE = "blockbuster"
DEFAULT_TEXT_COLOR = "#ffffff"
DEFAULT_BACKGROUND = "#000000"
PLACEHOLDER_TEXT = "No content provided"

# The render API has no separate 1080p token; "full-hd" requests render as "hd".
RESOLUTION_MAP: dict[Resolution, Resolution] = {
    Resolution.FULL_HD: Resolution.HD,
    Resolution.HD: Resolution.HD,
    Resolution.SD: Resolution.SD,
}

PLATFORM_ASPECT_RATIOS: dict[Platform, AspectRatio] = {
    Platform.INSTAGRAM: AspectRatio.PORTRAIT,
    Platform.TIKTOK: AspectRatio.PORTRAIT,
    Platform.YOUTUBE: AspectRatio.LANDSCAPE,
    Platform.FACEBOOK: AspectRatio.SQUARE,
    Platform.TWITTER: AspectRatio.LANDSCAPE,
    Platform.LINKEDIN: AspectRatio.LANDSCAPE,
}

# (aspect ratio, resolution) for the social media preset
SOCIAL_PRESETS: dict[Platform, tuple[AspectRatio, Resolution]] = {
    Platform.INSTAGRAM: (AspectRatio.PORTRAIT, Resolution.FULL_HD),
    Platform.TIKTOK: (AspectRatio.PORTRAIT, Resolution.FULL_HD),
    Platform.YOUTUBE: (AspectRatio.PORTRAIT, Resolution.FULL_HD),
    Platform.FACEBOOK: (AspectRatio.SQUARE, Resolution.HD),
}

VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi")


@dataclass
class BuildResult:
    edit: Edit
    estimated_duration: float
    edit_type: EditType


def map_resolution(resolution: Resolution) -> Resolution:
    return RESOLUTION_MAP.get(resolution, resolution)


def aspect_ratio_for_platform(platform: Platform | None) -> AspectRatio:
    if platform is None:
        return AspectRatio.LANDSCAPE
    return PLATFORM_ASPECT_RATIOS.get(platform, AspectRatio.LANDSCAPE)


def title_clip(
    text: str,
    start: float = 0.0,
    length: float = TITLE_LENGTH_SECONDS,
    style: str | None = None,
    color: str | None = None,
) -> Clip:
    return Clip(
        asset=TitleAsset(
            text=text,
            style=style or DEFAULT_TEXT_STYLE,
            color=color or DEFAULT_TEXT_COLOR,
            size="x-large",
            position="center",
        ),
        start=start,
        length=length,
    )


def build_video_merge_edit(
    video_urls: list[str],
    output_format: OutputFormat = OutputFormat.MP4,
    output_resolution: Resolution = Resolution.FULL_HD,
    options: TemplateOptions | None = None,
    prober: MediaProber | None = None,
) -> BuildResult:
    """Probe every video and lay the clips end to end on one track."""
    if prober is None:
        from utils.media_probe import MediaProber

        prober = MediaProber()

    logger.info(f"Getting video durations for {len(video_urls)} videos")
    durations = prober.durations_with_fallback(video_urls)
    return layout_video_merge(
        video_urls, durations, output_format, output_resolution, options
    )


def layout_video_merge(
    video_urls: list[str],
    durations: list[float],
    output_format: OutputFormat = OutputFormat.MP4,
    output_resolution: Resolution = Resolution.FULL_HD,
    options: TemplateOptions | None = None,
) -> BuildResult:
    if len(video_urls) != len(durations):
        raise ValueError("video_urls and durations must have the same length")

    options = options or TemplateOptions()
    transition = options.transition or DEFAULT_TRANSITION

    clips: list[Clip] = []
    current_start = 0.0

    if options.title:
        clips.append(
            title_clip(
                options.title,
                style=options.text_style,
                color=options.text_color,
            )
        )
        current_start = TITLE_LENGTH_SECONDS

    for index, (url, duration) in enumerate(zip(video_urls, durations)):
        clip = Clip(
            asset=VideoAsset(src=url),
            start=current_start,
            length=duration,
            fit=Fit.COVER,
        )
        if index > 0 or options.title:
            clip.transition = Transition.both(transition)
        clips.append(clip)
        current_start += duration

    timeline = Timeline(
        tracks=[Track(clips=clips)],
        background=options.background_color or DEFAULT_BACKGROUND,
    )
    if options.music:
        timeline.soundtrack = Soundtrack(
            src=options.music,
            effect=AudioEffect.FADE_IN_FADE_OUT,
            volume=0.1,
        )

    if output_format == OutputFormat.GIF:
        aspect_ratio = AspectRatio.SQUARE
    else:
        aspect_ratio = options.aspect_ratio or AspectRatio.LANDSCAPE

    resolution = map_resolution(output_resolution)
    logger.debug(
        f"Resolution mapping: {output_resolution.value} -> {resolution.value}"
    )

    edit = Edit(
        timeline=timeline,
        output=Output(
            format=output_format,
            resolution=resolution,
            aspect_ratio=aspect_ratio,
        ),
    )

    estimated = sum(durations) + (TITLE_LENGTH_SECONDS if options.title else 0.0)
    logger.info(f"Created {len(clips)} clips, estimated duration {estimated}s")
    return BuildResult(edit=edit, estimated_duration=estimated, edit_type=EditType.LEGACY)


def build_template_edit(
    template: TemplateRef | None,
    options: TemplateOptions | None = None,
) -> BuildResult:
    """Build a slideshow-style edit from template options."""
    options = options or TemplateOptions()
    duration = options.duration or DEFAULT_IMAGE_DURATION_SECONDS
    transition = options.transition or DEFAULT_TRANSITION
    text_color = options.text_color or DEFAULT_TEXT_COLOR

    main_clips: list[Clip] = []
    overlay_clips: list[Clip] = []
    current_start = 0.0

    if options.title:
        main_clips.append(
            title_clip(options.title, style=options.text_style, color=text_color)
        )
        current_start = TITLE_LENGTH_SECONDS

    images_span = len(options.image_urls) * duration
    if options.subtitle:
        overlay_clips.append(
            Clip(
                asset=TitleAsset(
                    text=options.subtitle,
                    style="minimal",
                    color=text_color,
                    size="medium",
                    position="bottomCenter",
                ),
                start=current_start,
                length=max(images_span, SUBTITLE_MIN_LENGTH_SECONDS),
            )
        )

    for index, url in enumerate(options.image_urls):
        clip = Clip(
            asset=ImageAsset(src=url),
            start=current_start,
            length=duration,
            fit=Fit.COVER,
        )
        if index > 0 or options.title:
            clip.transition = Transition.both(transition)
        main_clips.append(clip)
        current_start += duration

    tracks = [Track(clips=clips) for clips in (main_clips, overlay_clips) if clips]

    if not tracks:
        # Empty templates are rejected before building; keep the edit renderable anyway.
        logger.warning("No content provided, creating placeholder clip")
        tracks = [
            Track(
                clips=[
                    Clip(
                        asset=TitleAsset(
                            text=PLACEHOLDER_TEXT,
                            style="minimal",
                            color=DEFAULT_TEXT_COLOR,
                            size="large",
                            position="center",
                        ),
                        start=0,
                        length=PLACEHOLDER_LENGTH_SECONDS,
                    )
                ]
            )
        ]

    timeline = Timeline(
        tracks=tracks,
        background=options.background_color or DEFAULT_BACKGROUND,
    )
    if options.music:
        timeline.soundtrack = Soundtrack(
            src=options.music,
            effect=AudioEffect.FADE_IN_FADE_OUT,
            volume=0.3,
        )

    edit = Edit(
        timeline=timeline,
        output=Output(
            format=OutputFormat.MP4,
            resolution=Resolution.FULL_HD,
            aspect_ratio=options.aspect_ratio
            or aspect_ratio_for_platform(options.platform),
        ),
        merge=template.merge_fields if template and template.merge_fields else None,
    )

    estimated = timeline.duration()
    logger.info(
        f"Template {template.id if template else '-'} created "
        f"{edit.clip_count} clips, estimated duration {estimated}s"
    )
    return BuildResult(edit=edit, estimated_duration=estimated, edit_type=EditType.TEMPLATE)


def build_picture_in_picture_edit(
    background_url: str,
    overlay_url: str,
    overlay_position: str = "topRight",
    overlay_scale: float = 0.3,
    duration: float = 10.0,
    resolution: Resolution = Resolution.FULL_HD,
) -> Edit:
    background = Clip(
        asset=VideoAsset(src=background_url),
        start=0,
        length=duration,
        fit=Fit.COVER,
    )
    overlay = Clip(
        asset=VideoAsset(src=overlay_url),
        start=0,
        length=duration,
        fit=Fit.COVER,
        scale=overlay_scale,
        position=overlay_position,
        offset=Offset(
            x=-0.05 if "Right" in overlay_position else 0.05,
            y=-0.05 if overlay_position.startswith("top") else 0.05,
        ),
    )
    return Edit(
        timeline=Timeline(
            tracks=[Track(clips=[background]), Track(clips=[overlay])],
            background=DEFAULT_BACKGROUND,
        ),
        output=Output(
            format=OutputFormat.MP4,
            resolution=resolution,
            aspect_ratio=AspectRatio.LANDSCAPE,
        ),
    )


def build_social_media_edit(
    platform: Platform,
    media_urls: list[str],
    title: str | None = None,
    logo: str | None = None,
    music: str | None = None,
    primary_color: str | None = None,
    secondary_color: str | None = None,
) -> Edit:
    """Platform preset: title intro, media clips, optional logo overlay."""
    aspect_ratio, resolution = SOCIAL_PRESETS.get(
        platform, (AspectRatio.LANDSCAPE, Resolution.HD)
    )

    clips: list[Clip] = []
    current_start = 0.0

    if title:
        clip = title_clip(title, color=primary_color)
        clip.asset.size = "large"
        clip.transition = Transition.both(DEFAULT_TRANSITION)
        clips.append(clip)
        current_start = TITLE_LENGTH_SECONDS

    for index, url in enumerate(media_urls):
        is_video = any(ext in url.lower() for ext in VIDEO_EXTENSIONS)
        length = 5.0 if is_video else 3.0
        clip = Clip(
            asset=VideoAsset(src=url) if is_video else ImageAsset(src=url),
            start=current_start,
            length=length,
            fit=Fit.COVER,
        )
        if index > 0 or title:
            clip.transition = Transition.both(DEFAULT_TRANSITION)
        clips.append(clip)
        current_start += length

    tracks = [Track(clips=clips)]
    if logo and current_start > 0:
        tracks.append(
            Track(
                clips=[
                    Clip(
                        asset=ImageAsset(src=logo),
                        start=0,
                        length=current_start,
                        fit=Fit.NONE,
                        scale=0.2,
                        position="topRight",
                        offset=Offset(x=-0.05, y=-0.05),
                        opacity=0.8,
                    )
                ]
            )
        )

    timeline = Timeline(
        tracks=tracks,
        background=secondary_color or DEFAULT_BACKGROUND,
    )
    if music:
        timeline.soundtrack = Soundtrack(
            src=music,
            effect=AudioEffect.FADE_IN_FADE_OUT,
            volume=0.3,
        )

    return Edit(
        timeline=timeline,
        output=Output(
            format=OutputFormat.MP4,
            resolution=resolution,
            aspect_ratio=aspect_ratio,
        ),
    )
