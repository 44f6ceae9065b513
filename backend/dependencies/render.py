import logging

from fastapi import HTTPException, Request, status

from utils.errors import ConfigurationError
from utils.media_probe import MediaProber
from utils.shotstack_client import ShotstackClient


logger = logging.getLogger(__name__)


def get_render_client(request: Request) -> ShotstackClient:
    client = getattr(request.app.state, "render_client", None)
    if client is None:
        error = getattr(request.app.state, "render_client_error", None)
        if not isinstance(error, ConfigurationError):
            error = ConfigurationError("Shotstack client is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error.to_dict(),
        )
    return client


def get_media_prober(request: Request) -> MediaProber:
    prober = getattr(request.app.state, "media_prober", None)
    if prober is None:
        prober = MediaProber()
        request.app.state.media_prober = prober
    return prober


def get_webhook_secret(request: Request) -> str | None:
    client = getattr(request.app.state, "render_client", None)
    if client is not None:
        return client.config.webhook_secret
    config = getattr(request.app.state, "render_config", None)
    return config.webhook_secret if config is not None else None
