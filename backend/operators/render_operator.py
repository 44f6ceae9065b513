from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from database.models import RenderJob as RenderJobModel
from models.edit_models import Edit, OutputFormat
from models.render_models import (
    AssetStatus,
    EditType,
    IngestHandle,
    IngestRequest,
    MediaSummary,
    PresetRenderRequest,
    ProbeMetadata,
    RenderHandle,
    RenderJobStatus,
    RenderRequest,
    RenderStatusSnapshot,
    TemplateRenderRequest,
    WebhookPayload,
)
from utils.edit_builder import (
    BuildResult,
    build_picture_in_picture_edit,
    build_social_media_edit,
    build_template_edit,
    build_video_merge_edit,
)
from utils.edit_validator import validate_edit
from utils.errors import (
    InvalidInputError,
    NoContentInTemplateError,
    NoContentProvidedError,
    PersistenceError,
)
from utils.media_probe import MediaProber, is_http_url
from utils.shotstack_client import ShotstackClient

logger = logging.getLogger(__name__)


MAX_VIDEO_URLS = 10
DEFAULT_ESTIMATED_DURATION = 10.0
SUBMITTED_NOT_SAVED_WARNING = "Render job submitted but could not be saved; track it by jobId"


@dataclass
class RenderSubmission:
    job_id: str
    db_job_id: str | None
    estimated_duration: float
    edit_type: EditType
    project_name: str
    warning: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def validate_video_urls(video_urls: list[str]) -> None:
    if len(video_urls) > MAX_VIDEO_URLS:
        raise InvalidInputError(
            f"Maximum {MAX_VIDEO_URLS} videos allowed per merge",
            suggestion=f"Split the request into batches of {MAX_VIDEO_URLS} videos or fewer",
        )
    for url in video_urls:
        if not is_http_url(url):
            raise InvalidInputError(f"Invalid URL: {url}")


def build_edit(request: RenderRequest, prober: MediaProber) -> BuildResult:
    """Pick the input shape (edit, then template, then videoUrls) and build the edit."""
    options = request.template_options

    if request.edit is not None:
        logger.info("Using provided custom edit configuration")
        edit = validate_edit(request.edit, EditType.CUSTOM)
        estimated = (
            options.duration if options and options.duration else DEFAULT_ESTIMATED_DURATION
        )
        return BuildResult(edit=edit, estimated_duration=estimated, edit_type=EditType.CUSTOM)

    if request.template is not None:
        logger.info(f"Rendering with template: {request.template.id}")
        if options is None or not options.has_content():
            raise NoContentInTemplateError(request.template.id)
        return build_template_edit(request.template, options)

    if request.video_urls:
        validate_video_urls(request.video_urls)
        logger.info(f"Creating video merge for {len(request.video_urls)} videos")
        return build_video_merge_edit(
            request.video_urls,
            output_format=request.output_format,
            output_resolution=request.output_resolution,
            options=options,
            prober=prober,
        )

    raise NoContentProvidedError()


def build_and_submit(
    db: DBSession,
    client: ShotstackClient,
    prober: MediaProber,
    request: RenderRequest,
    user_id: UUID | None = None,
) -> RenderSubmission:
    build = build_edit(request, prober)
    handle = client.submit(build.edit, build.edit_type)

    db_job_id: str | None = None
    warning: str | None = None
    try:
        job = record_submitted_job(db, handle, build, request, user_id)
        db_job_id = str(job.id)
    except PersistenceError as e:
        # The render is already running; losing the row must not lose the job id
        logger.error(f"Render {handle.job_id} submitted but not recorded: {e.message}")
        warning = SUBMITTED_NOT_SAVED_WARNING

    return RenderSubmission(
        job_id=handle.job_id,
        db_job_id=db_job_id,
        estimated_duration=build.estimated_duration,
        edit_type=build.edit_type,
        project_name=request.project_name,
        warning=warning,
    )


def record_submitted_job(
    db: DBSession,
    handle: RenderHandle,
    build: BuildResult,
    request: RenderRequest,
    user_id: UUID | None = None,
) -> RenderJobModel:
    metadata: dict[str, Any] = {
        "projectName": request.project_name,
        "estimatedDuration": build.estimated_duration,
        "editType": build.edit_type.value,
    }
    if request.video_urls:
        metadata["totalVideos"] = len(request.video_urls)
        metadata["inputVideoUrls"] = list(request.video_urls)
    if request.template:
        metadata["templateId"] = request.template.id
    if request.template_options:
        metadata["templateOptions"] = request.template_options.model_dump(
            mode="json", by_alias=True, exclude_none=True
        )

    output = build.edit.output
    return _insert_job(
        db,
        shotstack_job_id=handle.job_id,
        user_id=user_id,
        input_video_urls=list(request.video_urls or []),
        output_format=output.format.value,
        output_resolution=(output.resolution or request.output_resolution).value,
        metadata=metadata,
    )


def _insert_job(
    db: DBSession,
    shotstack_job_id: str,
    user_id: UUID | None,
    input_video_urls: list[str],
    output_format: str,
    output_resolution: str,
    metadata: dict[str, Any],
) -> RenderJobModel:
    job = RenderJobModel(
        shotstack_job_id=shotstack_job_id,
        user_id=user_id,
        status=RenderJobStatus.SUBMITTED.value,
        input_video_urls=input_video_urls,
        output_format=output_format,
        output_resolution=output_resolution,
        job_metadata=metadata,
    )
    try:
        db.add(job)
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to save render job {shotstack_job_id}: {e}") from e

    logger.info(f"Saved render job {job.id} for Shotstack job {shotstack_job_id}")
    return job


def get_render_job(db: DBSession, shotstack_job_id: str) -> RenderJobModel | None:
    return (
        db.query(RenderJobModel)
        .filter(RenderJobModel.shotstack_job_id == shotstack_job_id)
        .first()
    )


def get_owned_render_job(
    db: DBSession, shotstack_job_id: str, user_id: UUID | None
) -> RenderJobModel | None:
    owner = (
        RenderJobModel.user_id.is_(None)
        if user_id is None
        else RenderJobModel.user_id == user_id
    )
    return (
        db.query(RenderJobModel)
        .filter(RenderJobModel.shotstack_job_id == shotstack_job_id, owner)
        .first()
    )


def apply_status_snapshot(
    job: RenderJobModel,
    snapshot: RenderStatusSnapshot,
    extra_metadata: dict[str, Any] | None = None,
) -> bool:
    """Move a job forward to the snapshot's state. Returns False if the snapshot was stale."""
    try:
        current = RenderJobStatus(job.status)
    except ValueError:
        current = RenderJobStatus.SUBMITTED

    if not current.can_advance_to(snapshot.status):
        logger.info(
            f"Ignoring stale status {snapshot.status.value} for job "
            f"{job.shotstack_job_id} (currently {current.value})"
        )
        return False

    job.status = snapshot.status.value
    job.updated_at = _utcnow()
    if snapshot.status == RenderJobStatus.DONE:
        job.video_url = snapshot.url
    if snapshot.status == RenderJobStatus.FAILED:
        job.error_message = snapshot.error

    metadata = dict(job.job_metadata or {})
    if snapshot.duration is not None:
        metadata["duration"] = snapshot.duration
    if snapshot.render_time is not None:
        metadata["renderTime"] = snapshot.render_time
    if extra_metadata:
        metadata.update(extra_metadata)
    # Reassign so the JSON column is flagged dirty
    job.job_metadata = metadata
    return True


def get_status(
    db: DBSession,
    client: ShotstackClient,
    job_id: str,
    user_id: UUID | None = None,
) -> RenderStatusSnapshot:
    """Fetch the latest status and persist it. Persistence failures are logged, not raised."""
    if not job_id or not job_id.strip():
        raise InvalidInputError("Job ID is required", suggestion="Pass ?jobId=<render id>")

    snapshot = client.get_status(job_id.strip())

    try:
        job = get_owned_render_job(db, snapshot.job_id, user_id)
        if job is None:
            logger.info(f"No render job {snapshot.job_id} owned by user {user_id}")
        elif apply_status_snapshot(job, snapshot):
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update render job {snapshot.job_id}: {e}")

    return snapshot


def apply_webhook(db: DBSession, payload: WebhookPayload) -> RenderJobModel | None:
    snapshot = payload.to_snapshot()
    logger.info(f"Received webhook for render {payload.id}: {payload.status.value}")

    try:
        job = get_render_job(db, payload.id)
        if job is None:
            logger.warning(f"Webhook for unknown render job {payload.id}")
            return None
        apply_status_snapshot(
            job,
            snapshot,
            extra_metadata={"webhookReceived": _utcnow().isoformat()},
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to apply webhook for {payload.id}: {e}") from e

    return job


def submit_saved_template(
    db: DBSession,
    client: ShotstackClient,
    request: TemplateRenderRequest,
    user_id: UUID | None = None,
) -> RenderSubmission:
    handle = client.submit_template(request.template_id, request.merge_fields)

    metadata = {
        "projectName": request.project_name,
        "estimatedDuration": DEFAULT_ESTIMATED_DURATION,
        "editType": EditType.TEMPLATE.value,
        "templateId": request.template_id,
    }
    db_job_id, warning = _record_or_warn(
        db,
        shotstack_job_id=handle.job_id,
        user_id=user_id,
        input_video_urls=[],
        output_format=OutputFormat.MP4.value,
        output_resolution="template",
        metadata=metadata,
    )

    return RenderSubmission(
        job_id=handle.job_id,
        db_job_id=db_job_id,
        estimated_duration=DEFAULT_ESTIMATED_DURATION,
        edit_type=EditType.TEMPLATE,
        project_name=request.project_name,
        warning=warning,
    )


def _record_or_warn(db: DBSession, **job_fields: Any) -> tuple[str | None, str | None]:
    """Insert the job row; returns (db_job_id, warning)."""
    try:
        job = _insert_job(db, **job_fields)
    except PersistenceError as e:
        logger.error(
            f"Render {job_fields['shotstack_job_id']} submitted but not recorded: {e.message}"
        )
        return None, SUBMITTED_NOT_SAVED_WARNING
    return str(job.id), None


def build_preset_edit(request: PresetRenderRequest) -> tuple[str, Edit, list[str]]:
    """Build the requested preset; returns (preset name, edit, input media urls)."""
    if request.picture_in_picture is not None:
        options = request.picture_in_picture
        urls = [options.background_url, options.overlay_url]
        validate_video_urls(urls)
        edit = build_picture_in_picture_edit(
            options.background_url,
            options.overlay_url,
            overlay_position=options.overlay_position,
            overlay_scale=options.overlay_scale,
            duration=options.duration,
            resolution=options.resolution,
        )
        return "pictureInPicture", edit, urls

    if request.social_media is not None:
        options = request.social_media
        validate_video_urls(options.media_urls)
        edit = build_social_media_edit(
            options.platform,
            options.media_urls,
            title=options.title,
            logo=options.logo,
            music=options.music,
            primary_color=options.primary_color,
            secondary_color=options.secondary_color,
        )
        return "socialMedia", edit, list(options.media_urls)

    raise NoContentProvidedError()


def submit_preset(
    db: DBSession,
    client: ShotstackClient,
    request: PresetRenderRequest,
    user_id: UUID | None = None,
) -> RenderSubmission:
    preset, edit, urls = build_preset_edit(request)
    handle = client.submit(edit, EditType.CUSTOM)
    estimated = edit.timeline.duration()

    db_job_id, warning = _record_or_warn(
        db,
        shotstack_job_id=handle.job_id,
        user_id=user_id,
        input_video_urls=urls,
        output_format=edit.output.format.value,
        output_resolution=edit.output.resolution.value,
        metadata={
            "projectName": request.project_name,
            "estimatedDuration": estimated,
            "editType": EditType.CUSTOM.value,
            "preset": preset,
        },
    )
    return RenderSubmission(
        job_id=handle.job_id,
        db_job_id=db_job_id,
        estimated_duration=estimated,
        edit_type=EditType.CUSTOM,
        project_name=request.project_name,
        warning=warning,
    )


def probe_media(client: ShotstackClient, url: str) -> tuple[MediaSummary, ProbeMetadata]:
    if not is_http_url(url):
        raise InvalidInputError(f"Invalid URL: {url}")
    metadata = client.probe(url)
    return metadata.summarize(), metadata


def ingest_media(client: ShotstackClient, request: IngestRequest) -> IngestHandle:
    if not is_http_url(request.url):
        raise InvalidInputError(f"Invalid URL: {request.url}")
    return client.ingest_asset(request.url, request.output)


def asset_status(client: ShotstackClient, asset_id: str) -> AssetStatus:
    if not asset_id or not asset_id.strip():
        raise InvalidInputError("Valid asset ID is required")
    return client.get_asset_status(asset_id.strip())
