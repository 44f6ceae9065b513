"""
Error taxonomy for the render pipeline.

Every error carries an explicit ``ErrorKind`` so callers can tell input
problems (fix and resubmit) from infrastructure problems (retry later)
without matching on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    INPUT = "input"
    VALIDATION = "validation"
    PROBE = "probe"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"


class RenderServiceError(Exception):
    kind: ErrorKind = ErrorKind.PERMANENT
    default_suggestion: str | None = None

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion or self.default_suggestion
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error": self.message,
            "kind": self.kind.value,
        }
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        if self.details:
            payload["details"] = self.details
        return payload


# =============================================================================
# INPUT
# =============================================================================


class InputError(RenderServiceError):
    kind = ErrorKind.INPUT


class NoContentProvidedError(InputError):
    default_suggestion = (
        "Provide video URLs, a complete edit configuration, "
        "or template options with content"
    )

    def __init__(self):
        super().__init__(
            "No content provided for rendering: either videoUrls, an edit "
            "configuration, or a template with content must be provided"
        )


class NoContentInTemplateError(InputError):
    default_suggestion = "Add content to templateOptions before rendering"

    def __init__(self, template_id: str | None = None):
        super().__init__(
            "No content provided for template: provide at least one of "
            "imageUrls, title, or subtitle in templateOptions",
            details={"templateId": template_id} if template_id else None,
        )


class InvalidInputError(InputError):
    default_suggestion = "Check the request values and try again"


# =============================================================================
# VALIDATION
# =============================================================================


class EditValidationError(RenderServiceError):
    kind = ErrorKind.VALIDATION
    default_suggestion = (
        "Ensure your video has valid content (images, videos, or text) "
        "before rendering"
    )


class MissingTimelineError(EditValidationError):
    def __init__(self):
        super().__init__("Edit must have a timeline")


class NoValidTracksError(EditValidationError):
    def __init__(self, message: str, suggestion: str | None = None):
        super().__init__(message, suggestion=suggestion)


class InvalidClipError(EditValidationError):
    default_suggestion = (
        "Every clip needs an asset with a known type, a start >= 0 and a length > 0"
    )

    def __init__(self, track_index: int, clip_index: int, reason: str):
        self.track_index = track_index
        self.clip_index = clip_index
        super().__init__(
            f"Track {track_index + 1}, Clip {clip_index + 1} {reason}",
            details={"track": track_index, "clip": clip_index},
        )


class InvalidEditConfigError(EditValidationError):
    pass


# =============================================================================
# PROBE
# =============================================================================


class ProbeError(RenderServiceError):
    kind = ErrorKind.PROBE

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Could not get media duration for {url}: {reason}")


# =============================================================================
# RENDER ENGINE
# =============================================================================


class RenderError(RenderServiceError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        attempts: int = 1,
        suggestion: str | None = None,
    ):
        self.status_code = status_code
        self.attempts = attempts
        details: dict[str, Any] = {"attempts": attempts}
        if status_code is not None:
            details["statusCode"] = status_code
        super().__init__(message, suggestion=suggestion, details=details)


class TransientRenderError(RenderError):
    kind = ErrorKind.TRANSIENT
    default_suggestion = "The render service is busy or unreachable; try again later"


class PermanentRenderError(RenderError):
    kind = ErrorKind.PERMANENT
    default_suggestion = "Check API key, rate limits, and edit configuration"


class NoJobIdError(PermanentRenderError):
    def __init__(self):
        super().__init__("No job ID returned from the render service")


# =============================================================================
# PERSISTENCE / CONFIGURATION
# =============================================================================


class PersistenceError(RenderServiceError):
    kind = ErrorKind.PERSISTENCE


class ConfigurationError(RenderServiceError):
    kind = ErrorKind.CONFIGURATION
    default_suggestion = (
        "Get a free Shotstack API key at https://shotstack.io/dashboard/developers"
    )
