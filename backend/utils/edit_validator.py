"""Structural validation for edits before they are sent to the render engine.

Validation both filters and checks: tracks without clips are dropped
silently, then every remaining clip must be well formed. The result is a
typed ``Edit``. Custom edits go through the same path as built ones.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from models.edit_models import KNOWN_ASSET_TYPES, Edit
from models.render_models import EditType
from utils.errors import (
    EditValidationError,
    InvalidClipError,
    MissingTimelineError,
    NoValidTracksError,
)

logger = logging.getLogger(__name__)


NO_TRACKS_MESSAGE = "No valid tracks with clips found. All tracks were empty."

NO_TRACKS_HINTS = {
    EditType.TEMPLATE: (
        "Check that templateOptions contains valid content (imageUrls, title, or subtitle)."
    ),
    EditType.LEGACY: "Check that your video URLs are valid and accessible.",
    EditType.CUSTOM: "Check that your edit configuration contains valid clips.",
}


def validate_edit(
    edit: Edit | Mapping[str, Any],
    source: EditType = EditType.CUSTOM,
) -> Edit:
    """Filter empty tracks and check every clip, returning the typed edit."""
    raw = _as_mapping(edit)

    timeline = raw.get("timeline")
    if not isinstance(timeline, Mapping):
        raise MissingTimelineError()

    tracks = timeline.get("tracks")
    candidate_tracks = tracks if isinstance(tracks, list) else []
    kept_tracks = [track for track in candidate_tracks if _has_clips(track)]

    dropped = len(candidate_tracks) - len(kept_tracks)
    if dropped:
        logger.debug("Filtered out %d empty tracks", dropped)

    if not kept_tracks:
        hint = NO_TRACKS_HINTS[source]
        raise NoValidTracksError(f"{NO_TRACKS_MESSAGE} {hint}", suggestion=hint)

    for track_index, track in enumerate(kept_tracks):
        for clip_index, clip in enumerate(track["clips"]):
            reason = clip_problem(clip)
            if reason:
                raise InvalidClipError(track_index, clip_index, reason)

    filtered = dict(raw)
    filtered["timeline"] = {**timeline, "tracks": kept_tracks}

    try:
        validated = Edit.model_validate(filtered)
    except ValidationError as e:
        raise _schema_error(e) from e

    logger.debug(
        "Validation passed: %d tracks with total %d clips",
        len(validated.timeline.tracks),
        validated.clip_count,
    )
    return validated


def clip_problem(clip: Any) -> str | None:
    """Describe what is wrong with a raw clip, or None if it is usable."""
    if not isinstance(clip, Mapping):
        return "must be an object"

    asset = clip.get("asset")
    if not isinstance(asset, Mapping) or not asset.get("type"):
        return "must have a valid asset with type"
    if asset["type"] not in KNOWN_ASSET_TYPES:
        return f"has unknown asset type '{asset['type']}'"

    start = clip.get("start")
    if not _is_number(start) or start < 0:
        return "must have a valid start time (number >= 0)"

    length = clip.get("length")
    if not _is_number(length) or length <= 0:
        return "must have a valid length (number > 0)"

    return None


def _as_mapping(edit: Edit | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(edit, Edit):
        return edit.to_payload()
    if not isinstance(edit, Mapping):
        raise EditValidationError("Edit configuration must be an object")
    return copy.deepcopy(dict(edit))


def _has_clips(track: Any) -> bool:
    if not isinstance(track, Mapping):
        return False
    clips = track.get("clips")
    return isinstance(clips, list) and len(clips) > 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _schema_error(error: ValidationError) -> EditValidationError:
    first = error.errors()[0]
    loc = first.get("loc", ())
    # loc looks like ("timeline", "tracks", 0, "clips", 1, "asset", ...)
    if len(loc) >= 5 and loc[:2] == ("timeline", "tracks") and loc[3] == "clips":
        field = ".".join(str(part) for part in loc[5:]) or "clip"
        return InvalidClipError(
            int(loc[2]), int(loc[4]), f"has an invalid {field}: {first.get('msg')}"
        )
    field = ".".join(str(part) for part in loc) or "edit"
    return EditValidationError(f"Invalid edit configuration at {field}: {first.get('msg')}")
