"""Concurrent per-scene video generation."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from movie_engine.adapters.video_gen.base import VideoGenProvider, VideoJobRequest
from movie_engine.config import settings
from movie_engine.errors import ProviderError, SceneGenerationError, ScenesPendingError
from movie_engine.logging import get_logger
from movie_engine.services.poller import PollStatus, SleepFunc, TaskPoller

logger = get_logger(__name__)


@dataclass
class SceneTask:
    """One scene's video job. Lives only for the duration of the stage."""

    scene_id: UUID
    scene_number: int
    prompt: str
    duration_seconds: float = 5.0
    reference_image_url: str | None = None
    job_id: str | None = None
    asset_url: str | None = None
    error: str | None = None
    pending: bool = False


SceneCallback = Callable[[SceneTask], None]
ProgressCallback = Callable[[int, int], None]


def _noop_scene(_task: SceneTask) -> None:
    return None


def _noop_progress(_completed: int, _total: int) -> None:
    return None


class SceneFanout:
    """Runs every scene's video job with bounded concurrency.

    - Each scene is submitted once, then polled. A timed-out poll loop is
      restarted on the same job id (``max_poll_rounds=None`` never gives up).
    - The first terminal scene failure cancels the remaining scenes and is
      raised as ``SceneGenerationError`` carrying the provider's message.
    - Scenes still pending after their poll rounds are reported together as
      ``ScenesPendingError`` once every other scene has finished.

    Args:
        on_submitted: Called with the task once its provider job id is known.
        on_completed: Called with the task once its asset URL is known.
        on_progress: Called with (completed, total) after each scene finishes.
    """

    def __init__(
        self,
        provider: VideoGenProvider,
        aspect_ratio: str = "16:9",
        concurrency: int | None = None,
        max_poll_rounds: int | None = None,
        poll_interval_seconds: float | None = None,
        poll_max_attempts: int | None = None,
        on_submitted: SceneCallback = _noop_scene,
        on_completed: SceneCallback = _noop_scene,
        on_progress: ProgressCallback = _noop_progress,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.aspect_ratio = aspect_ratio
        self.concurrency = max(1, concurrency or settings.scene_concurrency)
        self.max_poll_rounds = max_poll_rounds
        self.poller = TaskPoller(
            provider,
            interval_seconds=poll_interval_seconds,
            max_attempts=poll_max_attempts,
            sleep=sleep,
        )
        self.on_submitted = on_submitted
        self.on_completed = on_completed
        self.on_progress = on_progress
        self._completed = 0
        self._total = 0

    async def run(self, tasks: list[SceneTask]) -> list[SceneTask]:
        """Generate all scenes; returns the tasks with their asset URLs set."""
        self._completed = 0
        self._total = len(tasks)
        if not tasks:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        running = {
            asyncio.create_task(self._run_scene(task, semaphore)): task for task in tasks
        }

        logger.info(
            "scene_fanout_started",
            scene_count=len(tasks),
            concurrency=self.concurrency,
            provider=self.provider.name,
        )

        done, not_done = await asyncio.wait(running, return_when=asyncio.FIRST_EXCEPTION)

        failures = [
            (running[t], t.exception())
            for t in done
            if not t.cancelled() and t.exception() is not None
        ]
        if failures:
            for t in not_done:
                t.cancel()
            await asyncio.gather(*not_done, return_exceptions=True)
            _, error = min(failures, key=lambda item: item[0].scene_number)
            logger.error(
                "scene_fanout_failed",
                error=str(error),
                cancelled=len(not_done),
            )
            raise error

        pending = sorted(task.scene_number for task in tasks if task.pending)
        if pending:
            raise ScenesPendingError(pending)

        logger.info("scene_fanout_completed", scene_count=len(tasks))
        return sorted(tasks, key=lambda task: task.scene_number)

    async def _run_scene(self, task: SceneTask, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            request = VideoJobRequest(
                prompt=task.prompt,
                duration_seconds=task.duration_seconds,
                aspect_ratio=self.aspect_ratio,
                reference_image_url=task.reference_image_url,
            )
            try:
                task.job_id = await self.poller.submit(request)
            except ProviderError as e:
                task.error = str(e)
                raise SceneGenerationError(task.scene_number, str(e)) from e

            logger.info(
                "scene_submitted",
                scene_number=task.scene_number,
                job_id=task.job_id,
            )
            self.on_submitted(task)

            rounds = 0
            while True:
                result = await self.poller.await_completion(task.job_id)
                rounds += 1

                if result.status is PollStatus.SUCCEEDED:
                    task.asset_url = result.asset_url
                    break
                if result.status is PollStatus.FAILED:
                    task.error = result.error or "Unknown provider failure"
                    raise SceneGenerationError(task.scene_number, task.error)

                logger.info(
                    "scene_still_pending",
                    scene_number=task.scene_number,
                    job_id=task.job_id,
                    rounds=rounds,
                )
                if self.max_poll_rounds is not None and rounds >= self.max_poll_rounds:
                    task.pending = True
                    return

            self.on_completed(task)
            self._completed += 1
            logger.info(
                "scene_completed",
                scene_number=task.scene_number,
                completed=self._completed,
                total=self._total,
            )
            self.on_progress(self._completed, self._total)
