import pytest

from models.render_models import EditType
from utils.edit_validator import validate_edit
from utils.errors import (
    EditValidationError,
    InvalidClipError,
    MissingTimelineError,
    NoValidTracksError,
)


def _image_clip(start=0, length=3, src="https://cdn.example.com/a.png"):
    return {"asset": {"type": "image", "src": src}, "start": start, "length": length}


def _edit(*tracks):
    return {"timeline": {"tracks": list(tracks)}, "output": {"format": "mp4"}}


class TestTrackFiltering:
    def test_empty_track_is_dropped(self):
        edit = _edit({"clips": []}, {"clips": [_image_clip()]})

        validated = validate_edit(edit)

        assert len(validated.timeline.tracks) == 1
        assert validated.clip_count == 1

    def test_track_count_matches_tracks_with_clips(self):
        edit = _edit(
            {"clips": [_image_clip()]},
            {},
            {"clips": None},
            {"clips": "nope"},
            {"clips": [_image_clip(), _image_clip(start=3)]},
        )

        validated = validate_edit(edit)

        assert len(validated.timeline.tracks) == 2

    def test_all_empty_tracks_raise(self):
        with pytest.raises(NoValidTracksError) as exc:
            validate_edit(_edit({"clips": []}, {}), EditType.TEMPLATE)
        assert "templateOptions" in exc.value.message

    def test_message_depends_on_source(self):
        with pytest.raises(NoValidTracksError) as exc:
            validate_edit(_edit(), EditType.LEGACY)
        assert "video URLs" in exc.value.message

    def test_missing_timeline(self):
        with pytest.raises(MissingTimelineError):
            validate_edit({"output": {"format": "mp4"}})

    def test_non_mapping_edit(self):
        with pytest.raises(EditValidationError):
            validate_edit(["not", "an", "edit"])


class TestClipChecks:
    @pytest.mark.parametrize(
        "clip, reason",
        [
            ({"start": 0, "length": 1}, "asset"),
            ({"asset": {"type": "hologram"}, "start": 0, "length": 1}, "unknown asset type"),
            ({"asset": {"type": "image", "src": "x"}, "start": -1, "length": 1}, "start"),
            ({"asset": {"type": "image", "src": "x"}, "start": "0", "length": 1}, "start"),
            ({"asset": {"type": "image", "src": "x"}, "start": 0, "length": 0}, "length"),
            ({"asset": {"type": "image", "src": "x"}, "start": 0, "length": True}, "length"),
        ],
    )
    def test_invalid_clip(self, clip, reason):
        with pytest.raises(InvalidClipError) as exc:
            validate_edit(_edit({"clips": [_image_clip(), clip]}))

        assert exc.value.track_index == 0
        assert exc.value.clip_index == 1
        assert reason in exc.value.message
        assert exc.value.message.startswith("Track 1, Clip 2")

    def test_index_refers_to_surviving_tracks(self):
        bad = {"asset": {"type": "image", "src": "x"}, "start": 0, "length": -2}
        with pytest.raises(InvalidClipError) as exc:
            validate_edit(_edit({"clips": []}, {"clips": [bad]}))
        assert exc.value.track_index == 0

    def test_schema_error_inside_clip(self):
        # image assets require src
        clip = {"asset": {"type": "image"}, "start": 0, "length": 1}
        with pytest.raises(InvalidClipError) as exc:
            validate_edit(_edit({"clips": [clip]}))
        assert exc.value.clip_index == 0


class TestIdempotence:
    def test_validating_twice_yields_same_tracks(self):
        edit = _edit(
            {"clips": []},
            {"clips": [_image_clip(), _image_clip(start=3, src="https://cdn.example.com/b.png")]},
            {"clips": [{"asset": {"type": "title", "text": "Hi"}, "start": 0, "length": 2}]},
        )

        once = validate_edit(edit)
        twice = validate_edit(once)

        assert twice.to_payload() == once.to_payload()

    def test_input_mapping_is_not_mutated(self):
        edit = _edit({"clips": []}, {"clips": [_image_clip()]})
        validate_edit(edit)
        assert len(edit["timeline"]["tracks"]) == 2
