"""Stub video generation provider for simulation mode."""

from uuid import uuid4

from movie_engine.adapters.base import JobState, JobStatus
from movie_engine.adapters.video_gen.base import (
    VideoGenProvider,
    VideoJobRequest,
    VideoModelSpec,
)
from movie_engine.logging import get_logger

logger = get_logger(__name__)


class StubVideoGenProvider(VideoGenProvider):
    """Simulates video jobs without external calls.

    Args:
        polls_until_done: Status checks that report "running" before a job
            succeeds.
        fail_prompts: Jobs whose prompt contains any of these substrings end
            in a failed state.
    """

    models = {
        "stub": VideoModelSpec(
            model="stub",
            durations=(4, 5, 6, 8, 10),
            ratios=("16:9", "9:16", "1:1"),
            supports_image=True,
        ),
    }

    def __init__(
        self,
        polls_until_done: int = 0,
        fail_prompts: tuple[str, ...] = (),
    ) -> None:
        super().__init__()
        self.polls_until_done = polls_until_done
        self.fail_prompts = fail_prompts
        self._jobs: dict[str, dict] = {}

    @property
    def name(self) -> str:
        return "stub"

    async def submit(self, request: VideoJobRequest) -> str:
        job_id = f"stub-video-{uuid4().hex[:12]}"
        prepared = self.prepare(request)
        self._jobs[job_id] = {
            "polls": 0,
            "failed": any(p in request.prompt for p in self.fail_prompts),
        }
        logger.info(
            "stub_video_submitted",
            job_id=job_id,
            prompt=request.prompt[:100],
            duration=prepared.duration,
        )
        return job_id

    async def fetch_status(self, job_id: str) -> JobStatus:
        job = self._jobs.setdefault(job_id, {"polls": 0, "failed": False})
        job["polls"] += 1
        if job["polls"] <= self.polls_until_done:
            return JobStatus(state=JobState.RUNNING)
        if job["failed"]:
            return JobStatus(state=JobState.FAILED, error="Simulated generation failure")
        return JobStatus(
            state=JobState.SUCCEEDED,
            asset_url=f"https://simulated.invalid/videos/{job_id}.mp4",
        )
