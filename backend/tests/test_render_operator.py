from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from conftest import FakeProber, make_response
from database.models import RenderJob
from models.render_models import (
    EditType,
    IngestRequest,
    RenderJobStatus,
    RenderRequest,
    RenderStatusSnapshot,
    PresetRenderRequest,
    TemplateRenderRequest,
    WebhookPayload,
)
from operators import render_operator
from operators.render_operator import (
    apply_status_snapshot,
    apply_webhook,
    build_and_submit,
    build_edit,
    get_render_job,
    get_status,
    ingest_media,
    probe_media,
    submit_preset,
    submit_saved_template,
)
from utils.errors import (
    InvalidInputError,
    NoContentInTemplateError,
    NoContentProvidedError,
    NoValidTracksError,
    PersistenceError,
)


URL_A = "https://cdn.example.com/a.mp4"
URL_B = "https://cdn.example.com/b.mp4"


class ExplodingProber:
    def durations_with_fallback(self, urls):
        raise AssertionError("prober should not run")


def _submitted(job_id="render-1"):
    return make_response(201, {"success": True, "response": {"id": job_id, "message": "Queued"}})


def _status(status, **extra):
    return make_response(200, {"response": {"id": "render-1", "status": status, **extra}})


class TestBuildEdit:
    def test_template_without_content_rejected_first(self):
        request = RenderRequest.model_validate(
            {"template": {"id": "tpl-1"}, "templateOptions": {"aspectRatio": "9:16"}}
        )

        with pytest.raises(NoContentInTemplateError) as exc:
            build_edit(request, ExplodingProber())
        assert exc.value.details == {"templateId": "tpl-1"}

    def test_nothing_provided(self):
        with pytest.raises(NoContentProvidedError):
            build_edit(RenderRequest(), ExplodingProber())

    def test_edit_takes_precedence(self):
        request = RenderRequest.model_validate(
            {
                "videoUrls": [URL_A],
                "template": {"id": "tpl-1"},
                "edit": {
                    "timeline": {
                        "tracks": [
                            {"clips": []},
                            {
                                "clips": [
                                    {
                                        "asset": {"type": "image", "src": "https://x.test/a.png"},
                                        "start": 0,
                                        "length": 3,
                                    }
                                ]
                            },
                        ]
                    },
                    "output": {"format": "mp4"},
                },
            }
        )

        result = build_edit(request, ExplodingProber())

        assert result.edit_type == EditType.CUSTOM
        assert len(result.edit.timeline.tracks) == 1
        assert result.estimated_duration == 10

    def test_custom_edit_estimate_uses_template_duration(self):
        request = RenderRequest.model_validate(
            {
                "edit": {
                    "timeline": {
                        "tracks": [
                            {"clips": [{"asset": {"type": "title", "text": "x"}, "start": 0, "length": 1}]}
                        ]
                    }
                },
                "templateOptions": {"duration": 6},
            }
        )
        assert build_edit(request, ExplodingProber()).estimated_duration == 6

    def test_custom_edit_without_clips(self):
        request = RenderRequest(edit={"timeline": {"tracks": [{"clips": []}]}})
        with pytest.raises(NoValidTracksError):
            build_edit(request, ExplodingProber())

    def test_too_many_video_urls(self):
        request = RenderRequest(video_urls=[f"https://x.test/{i}.mp4" for i in range(11)])
        with pytest.raises(InvalidInputError):
            build_edit(request, ExplodingProber())

    def test_relative_video_url(self):
        request = RenderRequest(video_urls=[URL_A, "videos/b.mp4"])
        with pytest.raises(InvalidInputError):
            build_edit(request, ExplodingProber())

    def test_video_merge(self):
        request = RenderRequest(video_urls=[URL_A, URL_B])
        prober = FakeProber({URL_A: 10.0, URL_B: 7.0})

        result = build_edit(request, prober)

        assert result.edit_type == EditType.LEGACY
        assert result.estimated_duration == 17


class TestBuildAndSubmit:
    def test_records_submitted_job(self, db_session, shotstack_client, http_session):
        http_session.queue(_submitted())
        user_id = uuid4()
        request = RenderRequest(video_urls=[URL_A, URL_B], project_name="Holiday")

        submission = build_and_submit(
            db_session, shotstack_client, FakeProber({URL_A: 10.0, URL_B: 7.0}), request, user_id
        )

        assert submission.job_id == "render-1"
        assert submission.warning is None
        job = get_render_job(db_session, "render-1")
        assert str(job.id) == submission.db_job_id
        assert job.status == "submitted"
        assert job.user_id == user_id
        assert job.input_video_urls == [URL_A, URL_B]
        assert job.output_resolution == "hd"
        assert job.job_metadata["projectName"] == "Holiday"
        assert job.job_metadata["editType"] == "legacy"
        assert job.job_metadata["totalVideos"] == 2
        assert job.job_metadata["estimatedDuration"] == 17

    def test_template_without_content_never_submits(self, db_session, shotstack_client, http_session):
        request = RenderRequest.model_validate({"template": {"id": "tpl-1"}})

        with pytest.raises(NoContentInTemplateError):
            build_and_submit(db_session, shotstack_client, ExplodingProber(), request)

        assert http_session.calls == []
        assert db_session.query(RenderJob).count() == 0

    def test_all_empty_custom_tracks_never_submit(self, db_session, shotstack_client, http_session):
        request = RenderRequest(edit={"timeline": {"tracks": [{"clips": []}, {}]}})

        with pytest.raises(NoValidTracksError):
            build_and_submit(db_session, shotstack_client, ExplodingProber(), request)
        assert http_session.calls == []

    def test_persistence_failure_keeps_job_id(
        self, db_session, shotstack_client, http_session, monkeypatch
    ):
        http_session.queue(_submitted("render-7"))

        def failing_insert(*args, **kwargs):
            raise PersistenceError("database unavailable")

        monkeypatch.setattr(render_operator, "_insert_job", failing_insert)
        request = RenderRequest.model_validate(
            {"template": {"id": "tpl"}, "templateOptions": {"title": "Hi"}}
        )

        submission = build_and_submit(db_session, shotstack_client, FakeProber(), request)

        assert submission.job_id == "render-7"
        assert submission.db_job_id is None
        assert submission.warning
        assert submission.edit_type == EditType.TEMPLATE

    def test_database_error_is_wrapped(self, db_session, shotstack_client, http_session, monkeypatch):
        http_session.queue(_submitted("render-8"))

        def broken_commit():
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db_session, "commit", broken_commit)
        request = RenderRequest.model_validate(
            {"template": {"id": "tpl"}, "templateOptions": {"subtitle": "Hi"}}
        )

        submission = build_and_submit(db_session, shotstack_client, FakeProber(), request)

        assert submission.job_id == "render-8"
        assert submission.warning


class TestStatusUpdates:
    def _job(self, db_session, status="submitted", user_id=None):
        job = RenderJob(
            user_id=user_id,
            shotstack_job_id="render-1",
            status=status,
            input_video_urls=[],
            output_format="mp4",
            output_resolution="hd",
            job_metadata={"projectName": "P"},
        )
        db_session.add(job)
        db_session.commit()
        return job

    def test_done_snapshot_updates_job(self, db_session, shotstack_client, http_session):
        self._job(db_session, "rendering")
        http_session.queue(
            _status("done", url="https://cdn.test/out.mp4", duration=17, renderTime=4.2)
        )

        snapshot = get_status(db_session, shotstack_client, "render-1")

        assert snapshot.status == RenderJobStatus.DONE
        job = get_render_job(db_session, "render-1")
        assert job.status == "done"
        assert job.video_url == "https://cdn.test/out.mp4"
        assert job.error_message is None
        assert job.job_metadata == {"projectName": "P", "duration": 17, "renderTime": 4.2}

    def test_failed_snapshot_sets_error(self, db_session, shotstack_client, http_session):
        self._job(db_session, "queued")
        http_session.queue(_status("failed"))

        get_status(db_session, shotstack_client, "render-1")

        job = get_render_job(db_session, "render-1")
        assert job.status == "failed"
        assert job.error_message == "Unknown render error"
        assert job.video_url is None

    def test_backwards_snapshot_ignored(self, db_session):
        job = self._job(db_session, "rendering")

        applied = apply_status_snapshot(
            job, RenderStatusSnapshot(job_id="render-1", status=RenderJobStatus.QUEUED)
        )

        assert not applied
        assert job.status == "rendering"

    def test_other_user_cannot_update_job(self, db_session, shotstack_client, http_session):
        owner = uuid4()
        self._job(db_session, "submitted", user_id=owner)
        http_session.queue(_status("done", url="https://cdn.test/out.mp4"))

        snapshot = get_status(db_session, shotstack_client, "render-1", user_id=uuid4())

        assert snapshot.status == RenderJobStatus.DONE
        job = get_render_job(db_session, "render-1")
        assert job.status == "submitted"
        assert job.video_url is None
        assert job.job_metadata == {"projectName": "P"}

    def test_owner_poll_updates_job(self, db_session, shotstack_client, http_session):
        owner = uuid4()
        self._job(db_session, "queued", user_id=owner)
        http_session.queue(_status("rendering"))

        get_status(db_session, shotstack_client, "render-1", user_id=owner)

        assert get_render_job(db_session, "render-1").status == "rendering"

    def test_unknown_job_still_returns_snapshot(self, db_session, shotstack_client, http_session):
        http_session.queue(_status("queued"))

        snapshot = get_status(db_session, shotstack_client, "render-1")

        assert snapshot.status == RenderJobStatus.QUEUED

    def test_database_failure_does_not_fail_status(
        self, db_session, shotstack_client, http_session, monkeypatch
    ):
        http_session.queue(_status("rendering"))

        def broken_lookup(db, job_id, user_id):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(render_operator, "get_owned_render_job", broken_lookup)

        snapshot = get_status(db_session, shotstack_client, "render-1")

        assert snapshot.status == RenderJobStatus.RENDERING

    def test_blank_job_id(self, db_session, shotstack_client):
        with pytest.raises(InvalidInputError):
            get_status(db_session, shotstack_client, "  ")


class TestWebhook:
    def test_webhook_merges_metadata(self, db_session):
        db_session.add(
            RenderJob(
                shotstack_job_id="render-1",
                status="rendering",
                input_video_urls=[],
                output_format="mp4",
                output_resolution="hd",
                job_metadata={"projectName": "P"},
            )
        )
        db_session.commit()

        job = apply_webhook(
            db_session,
            WebhookPayload(id="render-1", status=RenderJobStatus.DONE, url="https://cdn.test/o.mp4"),
        )

        assert job.status == "done"
        assert job.video_url == "https://cdn.test/o.mp4"
        assert job.job_metadata["projectName"] == "P"
        assert "webhookReceived" in job.job_metadata

    def test_untracked_phase_reads_as_rendering(self):
        payload = WebhookPayload.model_validate({"id": "render-1", "status": "saving"})
        assert payload.status == RenderJobStatus.RENDERING

    def test_unknown_job(self, db_session):
        assert apply_webhook(
            db_session, WebhookPayload(id="nope", status=RenderJobStatus.QUEUED)
        ) is None


class TestOtherOperations:
    def test_submit_saved_template(self, db_session, shotstack_client, http_session):
        http_session.queue(_submitted("tpl-render"))
        request = TemplateRenderRequest(template_id="tpl-1", project_name="Promo")

        submission = submit_saved_template(db_session, shotstack_client, request)

        job = get_render_job(db_session, "tpl-render")
        assert submission.db_job_id == str(job.id)
        assert job.job_metadata["templateId"] == "tpl-1"

    def test_probe_media(self, shotstack_client, http_session):
        http_session.queue(
            make_response(
                200,
                {
                    "response": {
                        "metadata": {
                            "format": {"duration": "5.0"},
                            "streams": [{"codec_type": "video", "width": 640, "height": 360}],
                        }
                    }
                },
            )
        )

        summary, raw = probe_media(shotstack_client, URL_A)

        assert summary.is_video
        assert summary.duration == 5.0
        assert raw.url == URL_A

    def test_probe_rejects_bad_url(self, shotstack_client, http_session):
        with pytest.raises(InvalidInputError):
            probe_media(shotstack_client, "not-a-url")
        assert http_session.calls == []

    def test_ingest_media(self, shotstack_client, http_session):
        http_session.queue(make_response(201, {"response": {"id": "asset-1"}}))

        handle = ingest_media(shotstack_client, IngestRequest(url=URL_A))

        assert handle.id == "asset-1"


class TestPresets:
    def test_picture_in_picture(self, db_session, shotstack_client, http_session):
        http_session.queue(_submitted("pip-1"))
        request = PresetRenderRequest.model_validate(
            {"pictureInPicture": {"backgroundUrl": URL_A, "overlayUrl": URL_B, "duration": 8}}
        )

        submission = submit_preset(db_session, shotstack_client, request, uuid4())

        assert submission.estimated_duration == 8
        assert submission.edit_type == EditType.CUSTOM
        sent = http_session.calls[0]["json"]
        assert len(sent["timeline"]["tracks"]) == 2
        job = get_render_job(db_session, "pip-1")
        assert job.input_video_urls == [URL_A, URL_B]
        assert job.job_metadata["preset"] == "pictureInPicture"

    def test_social_media(self, db_session, shotstack_client, http_session):
        http_session.queue(_submitted("social-1"))
        request = PresetRenderRequest.model_validate(
            {
                "socialMedia": {
                    "platform": "tiktok",
                    "mediaUrls": [URL_A, "https://cdn.example.com/p.jpg"],
                    "title": "Launch",
                }
            }
        )

        submission = submit_preset(db_session, shotstack_client, request)

        assert submission.estimated_duration == 10
        assert http_session.calls[0]["json"]["output"]["aspectRatio"] == "9:16"
        assert get_render_job(db_session, "social-1").job_metadata["preset"] == "socialMedia"

    def test_no_preset(self, db_session, shotstack_client, http_session):
        with pytest.raises(NoContentProvidedError):
            submit_preset(db_session, shotstack_client, PresetRenderRequest())
        assert http_session.calls == []

    def test_relative_media_url(self, db_session, shotstack_client, http_session):
        request = PresetRenderRequest.model_validate(
            {"socialMedia": {"platform": "youtube", "mediaUrls": ["clips/a.mp4"]}}
        )
        with pytest.raises(InvalidInputError):
            submit_preset(db_session, shotstack_client, request)
        assert http_session.calls == []
