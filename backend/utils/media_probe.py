"""Media duration probing for timeline construction."""
from __future__ import annotations

import logging
import os
import re
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from utils.errors import InvalidInputError, ProbeError, RenderServiceError

logger = logging.getLogger(__name__)

# Used for any media whose duration cannot be determined
FALLBACK_DURATION_SECONDS = 5.0
PROBE_TIMEOUT_SECONDS = float(os.getenv("MEDIA_PROBE_TIMEOUT", "5"))
PROBE_MAX_WORKERS = int(os.getenv("MEDIA_PROBE_WORKERS", "4"))

URL_PATTERN = re.compile(r"^https?://.+", re.IGNORECASE)

DurationBackend = Callable[[str, float], float]


def is_http_url(url: str) -> bool:
    return isinstance(url, str) and bool(URL_PATTERN.match(url.strip()))


def ffprobe_duration(url: str, timeout: float) -> float:
    """
    Get the duration of remote media in seconds using ffprobe.

    Args:
        url: Public http(s) URL of the media
        timeout: Seconds before the probe is abandoned

    Returns:
        Duration in seconds

    Raises:
        ProbeError: if ffprobe fails, times out or reports no duration
    """
    cmd = [
        os.getenv("FFPROBE_BIN", "ffprobe"),
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        url,
    ]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise ProbeError(url, f"ffprobe timed out after {timeout}s")
    except OSError as e:
        raise ProbeError(url, f"ffprobe could not be started: {e}")

    if result.returncode != 0:
        raise ProbeError(url, result.stderr.strip() or "ffprobe failed")

    try:
        return float(result.stdout.strip())
    except ValueError:
        raise ProbeError(url, "duration not found in metadata")


def render_engine_duration(client) -> DurationBackend:
    """Backend that asks the render engine's probe endpoint instead of ffprobe."""

    def probe(url: str, timeout: float) -> float:
        try:
            metadata = client.probe(url, timeout=timeout)
        except RenderServiceError as e:
            raise ProbeError(url, e.message)
        if metadata.duration is None:
            raise ProbeError(url, "duration not found in metadata")
        return metadata.duration

    return probe


class MediaProber:
    """Probes media durations, falling back to a fixed length on failure."""

    def __init__(
        self,
        backend: DurationBackend = ffprobe_duration,
        timeout: float = PROBE_TIMEOUT_SECONDS,
        fallback: float = FALLBACK_DURATION_SECONDS,
        max_workers: int = PROBE_MAX_WORKERS,
    ):
        self.backend = backend
        self.timeout = timeout
        self.fallback = fallback
        self.max_workers = max(1, max_workers)

    def probe_duration(self, url: str) -> float:
        if not is_http_url(url):
            raise InvalidInputError(f"Invalid URL: {url}")

        try:
            duration = self.backend(url, self.timeout)
        except ProbeError:
            raise
        except Exception as e:
            raise ProbeError(url, str(e)) from e

        if duration is None or duration <= 0:
            raise ProbeError(url, f"non-positive duration {duration!r}")
        return float(duration)

    def duration_or_fallback(self, url: str) -> float:
        try:
            duration = self.probe_duration(url)
        except ProbeError as e:
            logger.warning(f"{e.message}, using {self.fallback}s default")
            return self.fallback
        logger.info(f"Video duration for {url}: {duration}s")
        return duration

    def durations_with_fallback(self, urls: list[str]) -> list[float]:
        """Probe all URLs concurrently; results keep input order."""
        for url in urls:
            if not is_http_url(url):
                raise InvalidInputError(f"Invalid URL: {url}")

        if not urls:
            return []

        durations: dict[int, float] = {}
        workers = min(self.max_workers, len(urls))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self.duration_or_fallback, url): index
                for index, url in enumerate(urls)
            }
            for future in as_completed(futures):
                durations[futures[future]] = future.result()

        return [durations[index] for index in range(len(urls))]
