import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from database.base import get_db
from dependencies.auth import Principal, get_principal
from dependencies.render import get_media_prober, get_render_client, get_webhook_secret
from models.render_models import (
    AssetStatusResponse,
    IngestRequest,
    IngestResponse,
    PresetRenderRequest,
    ProbeRequest,
    ProbeResponse,
    RenderRequest,
    RenderStatusResponse,
    RenderSubmitResponse,
    TemplateRenderRequest,
    WebhookAckResponse,
    WebhookPayload,
)
from operators.render_operator import (
    RenderSubmission,
    apply_webhook,
    asset_status,
    build_and_submit,
    get_status,
    ingest_media,
    probe_media,
    submit_preset,
    submit_saved_template,
)
from utils.errors import ErrorKind, RenderServiceError
from utils.media_probe import MediaProber
from utils.shotstack_client import ShotstackClient


router = APIRouter(prefix="/shotstack", tags=["shotstack"])
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PROBE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFIGURATION: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.PERMANENT: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def to_http_error(error: RenderServiceError) -> HTTPException:
    status_code = ERROR_STATUS.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{error.kind.value} error: {error.message}")
    else:
        logger.info(f"Rejected request ({error.kind.value}): {error.message}")
    return HTTPException(status_code=status_code, detail=error.to_dict())


def verify_shotstack_webhook(
    x_shotstack_webhook_secret: str | None = Header(default=None),
    webhook_secret: str | None = Depends(get_webhook_secret),
) -> None:
    if not webhook_secret:
        logger.warning("SHOTSTACK_WEBHOOK_SECRET not configured; rejecting webhook")
        raise HTTPException(status_code=503, detail="Shotstack webhook not configured")
    if not x_shotstack_webhook_secret or not secrets.compare_digest(
        x_shotstack_webhook_secret, webhook_secret
    ):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


def _submit_response(submission: RenderSubmission) -> RenderSubmitResponse:
    return RenderSubmitResponse(
        job_id=submission.job_id,
        db_job_id=submission.db_job_id,
        estimated_duration=submission.estimated_duration,
        project_name=submission.project_name,
        edit_type=submission.edit_type,
        warning=submission.warning,
    )


@router.post("/render", response_model=RenderSubmitResponse)
async def create_render(
    request: RenderRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    client: ShotstackClient = Depends(get_render_client),
    prober: MediaProber = Depends(get_media_prober),
):
    try:
        submission = await run_in_threadpool(
            build_and_submit, db, client, prober, request, principal.user_id
        )
    except RenderServiceError as e:
        raise to_http_error(e)

    return _submit_response(submission)


@router.get("/render", response_model=RenderStatusResponse)
async def get_render_status(
    job_id: str = Query(..., alias="jobId", min_length=1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    client: ShotstackClient = Depends(get_render_client),
):
    try:
        snapshot = await run_in_threadpool(get_status, db, client, job_id, principal.user_id)
    except RenderServiceError as e:
        raise to_http_error(e)

    return RenderStatusResponse(
        job_id=snapshot.job_id,
        status=snapshot.status,
        video_url=snapshot.url,
        error=snapshot.error,
        duration=snapshot.duration,
        render_time=snapshot.render_time,
    )


@router.post("/templates/render", response_model=RenderSubmitResponse)
async def render_template(
    request: TemplateRenderRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    client: ShotstackClient = Depends(get_render_client),
):
    try:
        submission = await run_in_threadpool(
            submit_saved_template, db, client, request, principal.user_id
        )
    except RenderServiceError as e:
        raise to_http_error(e)

    return _submit_response(submission)


@router.post("/presets/render", response_model=RenderSubmitResponse)
async def render_preset(
    request: PresetRenderRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    client: ShotstackClient = Depends(get_render_client),
):
    try:
        submission = await run_in_threadpool(
            submit_preset, db, client, request, principal.user_id
        )
    except RenderServiceError as e:
        raise to_http_error(e)

    return _submit_response(submission)


@router.post("/probe", response_model=ProbeResponse)
async def probe(
    request: ProbeRequest,
    principal: Principal = Depends(get_principal),
    client: ShotstackClient = Depends(get_render_client),
):
    try:
        summary, raw = await run_in_threadpool(probe_media, client, request.url)
    except RenderServiceError as e:
        raise to_http_error(e)

    return ProbeResponse(data=summary, raw=raw)


@router.post("/ingest", response_model=IngestResponse)
async def ingest(
    request: IngestRequest,
    principal: Principal = Depends(get_principal),
    client: ShotstackClient = Depends(get_render_client),
):
    try:
        handle = await run_in_threadpool(ingest_media, client, request)
    except RenderServiceError as e:
        raise to_http_error(e)

    return IngestResponse(id=handle.id, message=handle.message)


@router.get("/assets/{asset_id}", response_model=AssetStatusResponse)
async def get_asset(
    asset_id: str,
    principal: Principal = Depends(get_principal),
    client: ShotstackClient = Depends(get_render_client),
):
    try:
        asset = await run_in_threadpool(asset_status, client, asset_id)
    except RenderServiceError as e:
        raise to_http_error(e)

    return AssetStatusResponse(asset=asset)


@router.post("/webhook", response_model=WebhookAckResponse)
async def shotstack_webhook(
    payload: dict,
    db: Session = Depends(get_db),
    _: None = Depends(verify_shotstack_webhook),
):
    try:
        webhook = WebhookPayload.model_validate(payload)
        job = await run_in_threadpool(apply_webhook, db, webhook)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid webhook payload", "details": e.errors(include_url=False, include_context=False)},
        )
    except RenderServiceError as e:
        raise to_http_error(e)

    if job is None:
        return WebhookAckResponse(message="Webhook received for unknown job")
    return WebhookAckResponse(status=webhook.status)
