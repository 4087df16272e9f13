"""Submit-then-poll loop for provider jobs."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import httpx

from movie_engine.adapters.base import JobProvider, JobState
from movie_engine.config import settings
from movie_engine.errors import ProviderError
from movie_engine.logging import get_logger

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


class PollStatus(StrEnum):
    """Outcome of one poll loop."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class PollResult:
    """Result of waiting on a provider job.

    ``TIMED_OUT`` means the attempt budget ran out while the provider still
    reported the job as running. The job may still finish; callers re-poll
    the same job id rather than failing.
    """

    status: PollStatus
    job_id: str
    asset_url: str | None = None
    error: str | None = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status is PollStatus.SUCCEEDED


class TaskPoller:
    """Submits jobs to a provider and waits for them to reach a terminal state.

    The poller never retries a submission. Transient status-check errors
    (network failures, 429, 5xx) use up an attempt and polling continues;
    a ``ProviderError`` from the status check ends the loop as failed.
    """

    def __init__(
        self,
        provider: JobProvider,
        interval_seconds: float | None = None,
        max_attempts: int | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.interval_seconds = (
            settings.poll_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.max_attempts = settings.poll_max_attempts if max_attempts is None else max_attempts
        self._sleep = sleep

    async def submit(self, request: Any) -> str:
        """Submit a job and return the provider's job id.

        Raises:
            ProviderError: If the provider rejects the request.
        """
        return await self.provider.submit(request)

    async def await_completion(
        self,
        job_id: str,
        interval_seconds: float | None = None,
        max_attempts: int | None = None,
    ) -> PollResult:
        """Poll a job until it succeeds, fails or the attempt budget runs out."""
        interval = self.interval_seconds if interval_seconds is None else interval_seconds
        attempts_allowed = self.max_attempts if max_attempts is None else max_attempts

        for attempt in range(1, attempts_allowed + 1):
            await self._sleep(interval)

            try:
                status = await self.provider.fetch_status(job_id)
            except ProviderError as e:
                logger.error(
                    "poll_provider_rejected",
                    provider=self.provider.name,
                    job_id=job_id,
                    error=str(e),
                )
                return PollResult(PollStatus.FAILED, job_id, error=str(e), attempts=attempt)
            except httpx.HTTPError as e:
                logger.warning(
                    "poll_transient_error",
                    provider=self.provider.name,
                    job_id=job_id,
                    error=str(e),
                    attempt=attempt,
                )
                continue

            logger.debug(
                "poll_status",
                provider=self.provider.name,
                job_id=job_id,
                state=status.state,
                attempt=attempt,
            )

            if status.state is JobState.SUCCEEDED:
                return PollResult(
                    PollStatus.SUCCEEDED, job_id, asset_url=status.asset_url, attempts=attempt
                )
            if status.state is JobState.FAILED:
                return PollResult(PollStatus.FAILED, job_id, error=status.error, attempts=attempt)

        logger.info(
            "poll_timed_out",
            provider=self.provider.name,
            job_id=job_id,
            attempts=attempts_allowed,
        )
        return PollResult(PollStatus.TIMED_OUT, job_id, attempts=attempts_allowed)

    async def run(self, request: Any, max_rounds: int | None = 1) -> PollResult:
        """Submit a job and wait on it.

        A timed-out poll loop is restarted on the same job id up to
        ``max_rounds`` times (``None`` keeps polling until a terminal state).
        """
        job_id = await self.submit(request)
        rounds = 0
        while True:
            result = await self.await_completion(job_id)
            rounds += 1
            if result.status is not PollStatus.TIMED_OUT:
                return result
            if max_rounds is not None and rounds >= max_rounds:
                return result
