from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import requests


logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429})


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        return self.base_delay * (2 ** (attempt - 1))


class TransportError(Exception):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        attempts: int = 1,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.attempts = attempts
        self.retryable = retryable


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code in RETRYABLE_STATUS_CODES


class RetryingTransport:
    """JSON-over-HTTP transport with bounded exponential backoff.

    Retries 5xx, 429 and network-level failures; any other non-2xx response
    fails on the first attempt. ``max_attempts`` counts every request sent,
    including the first one.
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        policy: RetryPolicy | None = None,
        timeout: float = 30.0,
        debug: bool = False,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        label: str = "http",
    ):
        self.headers = dict(headers or {})
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.debug = debug
        self.session = session or requests.Session()
        self._sleep = sleep
        self.label = label

    def request(
        self,
        method: str,
        url: str,
        json_body: Any | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
    ) -> requests.Response:
        """Send one logical request. ``timeout`` and ``max_attempts`` override the defaults for this call."""
        max_attempts = max(1, max_attempts or self.policy.max_attempts)
        timeout = timeout if timeout is not None else self.timeout
        last_error: TransportError | None = None

        for attempt in range(1, max_attempts + 1):
            if self.debug:
                logger.debug(
                    "[%s] API request (attempt %d/%d): %s %s",
                    self.label,
                    attempt,
                    max_attempts,
                    method,
                    url,
                )

            try:
                response = self.session.request(
                    method,
                    url,
                    json=json_body,
                    headers=self.headers,
                    timeout=timeout,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = TransportError(
                    f"Network error calling {url}: {e}",
                    attempts=attempt,
                    retryable=True,
                )
            else:
                if self.debug:
                    logger.debug(
                        "[%s] API response: %s %s",
                        self.label,
                        response.status_code,
                        response.reason,
                    )

                if response.ok:
                    return response

                message = _error_message(response)
                if not is_retryable_status(response.status_code):
                    raise TransportError(
                        message,
                        status_code=response.status_code,
                        attempts=attempt,
                        retryable=False,
                    )
                last_error = TransportError(
                    message,
                    status_code=response.status_code,
                    attempts=attempt,
                    retryable=True,
                )

            if attempt < max_attempts:
                delay = self.policy.delay_for(attempt)
                logger.warning(
                    "[%s] %s; retrying in %.2fs (attempt %d/%d)",
                    self.label,
                    last_error.message,
                    delay,
                    attempt + 1,
                    max_attempts,
                )
                self._sleep(delay)

        assert last_error is not None
        logger.error(
            "[%s] giving up on %s %s after %d attempts: %s",
            self.label,
            method,
            url,
            max_attempts,
            last_error.message,
        )
        raise last_error

    def get(self, url: str) -> requests.Response:
        return self.request("GET", url)

    def post(self, url: str, json_body: Any) -> requests.Response:
        return self.request("POST", url, json_body=json_body)


def _error_message(response: requests.Response) -> str:
    message = f"API error: {response.status_code} {response.reason or ''}".rstrip()
    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return f"{message} - {text}" if text else message
    if isinstance(body, dict) and body.get("message"):
        return f"{message} - {body['message']}"
    return message
