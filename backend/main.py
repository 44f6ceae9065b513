import logging
import os
from pathlib import Path

from dotenv import load_dotenv

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from handlers.auth_handler import router as auth_router
from handlers.health_handler import router as health_router
from handlers.render_handler import router as render_router
from utils.errors import ConfigurationError
from utils.media_probe import MediaProber, render_engine_duration
from utils.shotstack_client import ShotstackClient, ShotstackConfig

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)


RENDER_LOG_FILE = os.getenv("RENDER_LOG_FILE", "").strip()
RENDER_LOG_LEVEL = os.getenv("RENDER_LOG_LEVEL", "INFO").strip()
if RENDER_LOG_FILE:
    render_log_path = Path(RENDER_LOG_FILE)
    if not render_log_path.is_absolute():
        render_log_path = ROOT_DIR / render_log_path
    for name in (
        "handlers.render_handler",
        "operators.render_operator",
        "utils.shotstack_client",
        "utils.http_transport",
        "utils.media_probe",
    ):
        _attach_file_handler(name, render_log_path, level_name=RENDER_LOG_LEVEL)


def _default_prober(client: ShotstackClient | None) -> MediaProber:
    backend = os.getenv("MEDIA_PROBE_BACKEND", "ffprobe").strip().lower()
    if backend == "shotstack":
        if client is None:
            logger.warning("MEDIA_PROBE_BACKEND=shotstack without a client, using ffprobe")
        else:
            return MediaProber(backend=render_engine_duration(client))
    return MediaProber()


def create_app(
    config: ShotstackConfig | None = None,
    client: ShotstackClient | None = None,
    prober: MediaProber | None = None,
) -> FastAPI:
    app = FastAPI(title="Shotstack Render Service")

    config = config or (client.config if client else ShotstackConfig.from_env())
    app.state.render_config = config
    app.state.render_client_error = None
    if client is None:
        try:
            client = ShotstackClient(config)
        except ConfigurationError as e:
            # Render routes answer 503 until a key is configured
            logger.error(f"Shotstack client disabled: {e.message}")
            app.state.render_client_error = e
    app.state.render_client = client
    app.state.media_prober = prober or _default_prober(client)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(render_router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            origin.strip()
            for origin in os.getenv(
                "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
            ).split(",")
            if origin.strip()
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
