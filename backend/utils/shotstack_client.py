from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from models.edit_models import Edit, MergeField, OutputFormat
from models.render_models import (
    AssetStatus,
    EditType,
    IngestHandle,
    ProbeMetadata,
    RenderHandle,
    RenderJobStatus,
    RenderStatusSnapshot,
)
from utils.edit_validator import validate_edit
from utils.errors import (
    ConfigurationError,
    EditValidationError,
    InvalidEditConfigError,
    NoJobIdError,
    PermanentRenderError,
    RenderError,
    TransientRenderError,
)
from utils.http_transport import RetryingTransport, RetryPolicy, TransportError


logger = logging.getLogger(__name__)

BASE_URLS = {
    "sandbox": "https://api.shotstack.io/stage",
    "production": "https://api.shotstack.io/v1",
}
USER_AGENT = "ShotstackService/2.0.0"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes")


@dataclass
class ConfigValidation:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ShotstackConfig:
    api_key: str
    environment: str = "sandbox"
    max_retries: int = 3
    retry_delay: float = 2.0
    debug: bool = False
    owner_id: str = ""
    webhook_url: str | None = None
    webhook_secret: str | None = None
    enable_cache: bool = True
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> ShotstackConfig:
        environment = os.getenv("SHOTSTACK_ENVIRONMENT", "sandbox").strip().lower()
        prefix = "SHOTSTACK_PRODUCTION" if environment == "production" else "SHOTSTACK_SANDBOX"
        return cls(
            api_key=os.getenv(f"{prefix}_API_KEY") or os.getenv("SHOTSTACK_API_KEY", ""),
            environment=environment,
            max_retries=int(os.getenv("SHOTSTACK_MAX_RETRIES", "3")),
            # Configured in milliseconds
            retry_delay=int(os.getenv("SHOTSTACK_RETRY_DELAY", "2000")) / 1000.0,
            debug=_env_flag("SHOTSTACK_DEBUG"),
            owner_id=os.getenv(f"{prefix}_OWNER_ID", ""),
            webhook_url=os.getenv("SHOTSTACK_WEBHOOK_URL") or None,
            webhook_secret=os.getenv("SHOTSTACK_WEBHOOK_SECRET") or None,
            enable_cache=_env_flag("SHOTSTACK_ENABLE_CACHE", default=True),
            request_timeout=float(os.getenv("SHOTSTACK_REQUEST_TIMEOUT", "30")),
        )

    @property
    def base_url(self) -> str:
        return BASE_URLS.get(self.environment, BASE_URLS["sandbox"])

    def validate(self) -> ConfigValidation:
        errors: list[str] = []
        warnings: list[str] = []

        if self.environment not in BASE_URLS:
            errors.append(
                f"Unknown SHOTSTACK_ENVIRONMENT '{self.environment}' "
                f"(expected one of {', '.join(BASE_URLS)})"
            )
        if not self.api_key:
            errors.append(
                f"Missing SHOTSTACK_{self.environment.upper()}_API_KEY "
                f"or SHOTSTACK_API_KEY for {self.environment} environment"
            )
        elif self.api_key == "disabled":
            errors.append(
                f"Shotstack API key is disabled for {self.environment} environment"
            )
        if not self.owner_id:
            warnings.append(
                f"Missing SHOTSTACK_{self.environment.upper()}_OWNER_ID "
                "(optional but recommended)"
            )
        if self.max_retries < 1:
            errors.append("SHOTSTACK_MAX_RETRIES must be at least 1")
        if self.retry_delay < 0:
            errors.append("SHOTSTACK_RETRY_DELAY must not be negative")

        return ConfigValidation(is_valid=not errors, errors=errors, warnings=warnings)

    def headers(self) -> dict[str, str]:
        headers = {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if not self.enable_cache:
            headers["Cache-Control"] = "no-cache"
        return headers


class ShotstackClient:
    """
    Client for the Shotstack render API.

    Every call goes through a RetryingTransport; transport failures come
    back as TransientRenderError (retries exhausted) or PermanentRenderError.
    Edits are validated again before submission so nothing malformed is
    ever sent.
    """

    def __init__(
        self,
        config: ShotstackConfig,
        transport: RetryingTransport | None = None,
    ):
        check = config.validate()
        if not check.is_valid:
            raise ConfigurationError("; ".join(check.errors))
        for warning in check.warnings:
            logger.warning(f"Shotstack config: {warning}")

        self.config = config
        self.transport = transport or RetryingTransport(
            headers=config.headers(),
            policy=RetryPolicy(
                max_attempts=config.max_retries,
                base_delay=config.retry_delay,
            ),
            timeout=config.request_timeout,
            debug=config.debug,
            label="shotstack",
        )
        logger.info(f"Shotstack client ready for {config.environment} ({config.base_url})")

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    def _call(
        self,
        method: str,
        path: str,
        json_body: Any | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
    ) -> dict[str, Any]:
        try:
            response = self.transport.request(
                method,
                self._url(path),
                json_body=json_body,
                timeout=timeout,
                max_attempts=max_attempts,
            )
        except TransportError as e:
            error_cls = TransientRenderError if e.retryable else PermanentRenderError
            raise error_cls(
                e.message,
                status_code=e.status_code,
                attempts=e.attempts,
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise PermanentRenderError(
                f"Invalid JSON from render service for {method} {path}",
                status_code=response.status_code,
            ) from e
        if not isinstance(body, dict):
            raise PermanentRenderError(
                f"Unexpected response shape for {method} {path}",
                status_code=response.status_code,
            )
        return body

    def submit(
        self,
        edit: Edit | Mapping[str, Any],
        source: EditType = EditType.CUSTOM,
    ) -> RenderHandle:
        try:
            validated = validate_edit(edit, source)
        except EditValidationError as e:
            raise InvalidEditConfigError(
                f"Invalid edit configuration: {e.message}",
                suggestion=e.suggestion,
                details=e.details,
            ) from e

        if self.config.webhook_url and not validated.callback:
            validated.callback = self.config.webhook_url

        logger.info(
            f"Submitting {source.value} edit: "
            f"{len(validated.timeline.tracks)} tracks, {validated.clip_count} clips"
        )
        body = self._call("POST", "/render", validated.to_payload())
        return self._render_handle(body)

    def submit_template(
        self,
        template_id: str,
        merge_fields: list[MergeField] | None = None,
    ) -> RenderHandle:
        payload = {
            "template": template_id,
            "merge": [field.to_payload() for field in merge_fields or []],
        }
        body = self._call("POST", "/templates/render", payload)
        return self._render_handle(body)

    def get_status(self, job_id: str) -> RenderStatusSnapshot:
        body = self._call("GET", f"/render/{job_id}")
        data = body.get("response") or {}
        raw_status = data.get("status")
        if raw_status and RenderJobStatus.from_vendor(raw_status) != raw_status:
            logger.info(f"Render {job_id} reported status '{raw_status}', treating as rendering")
        try:
            return RenderStatusSnapshot(
                job_id=data.get("id") or job_id,
                status=raw_status,
                url=data.get("url"),
                error=data.get("error"),
                duration=data.get("duration"),
                render_time=data.get("renderTime"),
            )
        except ValidationError as e:
            raise PermanentRenderError(
                f"Invalid status for render {job_id}: {e.errors()[0].get('msg')}"
            ) from e

    def wait_for_render(
        self,
        job_id: str,
        max_wait: float = 600.0,
        poll_interval: float = 5.0,
        on_progress: Callable[[RenderJobStatus], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> RenderStatusSnapshot:
        """Poll until the render is done. For scripts; the service itself never blocks on this."""
        started = clock()
        while clock() - started < max_wait:
            snapshot = self.get_status(job_id)
            if on_progress:
                on_progress(snapshot.status)
            if snapshot.status == RenderJobStatus.DONE:
                logger.info(f"Render completed: {job_id}")
                return snapshot
            if snapshot.status == RenderJobStatus.FAILED:
                raise PermanentRenderError(f"Render failed: {snapshot.error}")
            sleep(poll_interval)

        raise TransientRenderError(
            f"Render {job_id} did not finish within {max_wait}s",
            suggestion="Check the job status later with GET /shotstack/render",
        )

    def ingest_asset(
        self,
        url: str,
        output_format: OutputFormat = OutputFormat.MP4,
    ) -> IngestHandle:
        body = self._call("POST", "/ingest", {"url": url, "output": output_format.value})
        data = body.get("response") or body.get("data") or {}
        asset_id = data.get("id")
        if not asset_id:
            raise PermanentRenderError("No asset ID returned from ingest")
        return IngestHandle(id=asset_id, message=body.get("message"))

    def get_asset_status(self, asset_id: str) -> AssetStatus:
        body = self._call("GET", f"/assets/render/{asset_id}")
        data = body.get("response") or body.get("data")
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            raise PermanentRenderError(f"No asset found for {asset_id}", status_code=404)
        attributes = data.get("attributes") or data
        try:
            return AssetStatus.model_validate({"id": asset_id, **attributes})
        except ValidationError as e:
            raise PermanentRenderError(
                f"Invalid asset status for {asset_id}: {e.errors()[0].get('msg')}"
            ) from e

    def probe(self, url: str, timeout: float | None = None) -> ProbeMetadata:
        """Inspect a media URL. With ``timeout`` the call is a single bounded attempt."""
        if timeout is None:
            body = self._call("POST", "/probe", {"url": url})
        else:
            body = self._call("POST", "/probe", {"url": url}, timeout=timeout, max_attempts=1)
        data = body.get("response") or {}
        metadata = data.get("metadata") or data
        return ProbeMetadata(
            url=url,
            format=metadata.get("format") or {},
            streams=metadata.get("streams") or [],
        )

    def _render_handle(self, body: dict[str, Any]) -> RenderHandle:
        data = body.get("response") or {}
        job_id = data.get("id")
        if not job_id:
            raise NoJobIdError()
        logger.info(f"Render job submitted: {job_id}")
        return RenderHandle(job_id=job_id, message=data.get("message") or body.get("message"))


__all__ = [
    "ConfigValidation",
    "RenderError",
    "ShotstackClient",
    "ShotstackConfig",
]
