"""Common interface for job-based providers.

Every slow external service (video, lip-sync, music, rendering) follows the
same shape: submit a job, get an id back, then poll a status endpoint until it
reports a terminal state. Providers disagree on state vocabulary and on where
the output URL lives, so each adapter normalizes its responses into a
``JobStatus`` before anything else sees them.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import httpx

from movie_engine.errors import ProviderError


class JobState(StrEnum):
    """Normalized provider job state."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class JobStatus:
    """Normalized status of a provider job."""

    state: JobState
    asset_url: str | None = None
    error: str | None = None
    raw: dict[str, Any] | None = None


SUCCEEDED_STATES = frozenset(
    {"succeeded", "success", "successful", "completed", "complete", "done", "finished", "ok"}
)
FAILED_STATES = frozenset(
    {"failed", "failure", "error", "errored", "cancelled", "canceled", "rejected", "aborted"}
)

# Field paths tried, in order, when looking for a job's output URL
DEFAULT_ASSET_PATHS: tuple[str, ...] = (
    "output.0",
    "output_url",
    "url",
    "video_url",
    "result.output.0",
    "result.output_url",
    "video.url",
    "assets.video",
    "audio.url",
    "audio_file.url",
)

DEFAULT_ERROR_PATHS: tuple[str, ...] = (
    "failure",
    "failure_reason",
    "error",
    "error.message",
    "message",
)


def normalize_state(raw_state: Any) -> JobState:
    """Map a provider's state string onto running/succeeded/failed.

    Anything unrecognized (PENDING, IN_PROGRESS, THROTTLED, queued, dreaming...)
    is treated as still running.
    """
    if raw_state is None:
        return JobState.RUNNING
    value = str(raw_state).strip().lower()
    if value in SUCCEEDED_STATES:
        return JobState.SUCCEEDED
    if value in FAILED_STATES:
        return JobState.FAILED
    return JobState.RUNNING


def extract_field(data: Any, paths: Sequence[str]) -> str | None:
    """Return the first non-empty string found at any of the dotted paths.

    Numeric path segments index into lists, so ``output.0`` reads the first
    element of ``data["output"]``.
    """
    for path in paths:
        value = data
        for part in path.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            elif isinstance(value, list) and part.isdigit():
                index = int(part)
                value = value[index] if index < len(value) else None
            else:
                value = None
            if value is None:
                break
        if isinstance(value, str) and value:
            return value
    return None


class JobProvider(ABC):
    """Abstract base class for providers that run asynchronous jobs."""

    # Where this provider puts its output URL and failure text
    asset_paths: tuple[str, ...] = DEFAULT_ASSET_PATHS
    error_paths: tuple[str, ...] = DEFAULT_ERROR_PATHS
    state_key: str = "status"

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        ...

    @abstractmethod
    async def submit(self, request: Any) -> str:
        """Submit a job.

        Returns:
            The provider's job id.

        Raises:
            ProviderError: If the provider rejects the request.
        """
        ...

    @abstractmethod
    async def fetch_status(self, job_id: str) -> JobStatus:
        """Fetch and normalize a job's current status.

        Raises:
            ProviderError: If the provider definitively rejects the lookup.
            httpx.HTTPError: On transient transport or server errors.
        """
        ...

    def parse_status(self, data: dict[str, Any]) -> JobStatus:
        """Normalize a raw status payload using this provider's field names."""
        state = normalize_state(data.get(self.state_key))
        if state is JobState.SUCCEEDED:
            asset_url = extract_field(data, self.asset_paths)
            if not asset_url:
                return JobStatus(
                    state=JobState.FAILED,
                    error="Job succeeded but no output URL was returned",
                    raw=data,
                )
            return JobStatus(state=state, asset_url=asset_url, raw=data)
        if state is JobState.FAILED:
            error = extract_field(data, self.error_paths) or "Unknown provider failure"
            return JobStatus(state=state, error=error, raw=data)
        return JobStatus(state=state, raw=data)

    async def health_check(self) -> bool:
        """Check if the provider is available and healthy."""
        return True


def check_response(response: httpx.Response, provider: str) -> None:
    """Raise for a failed provider response.

    Client errors are definitive rejections and become ``ProviderError`` with
    the provider's own body text. Rate limits and server errors are raised as
    ``httpx.HTTPStatusError`` so callers can treat them as transient.
    """
    if response.is_success:
        return
    if response.status_code in (408, 429) or response.status_code >= 500:
        response.raise_for_status()
    raise ProviderError(
        response.text or f"HTTP {response.status_code}",
        provider=provider,
        status_code=response.status_code,
    )
