"""Stub lip-sync provider for simulation mode."""

from uuid import uuid4

from movie_engine.adapters.base import JobState, JobStatus
from movie_engine.adapters.lip_sync.base import LipSyncProvider, LipSyncRequest


class StubLipSyncProvider(LipSyncProvider):
    """Returns the input clip as the lip-synced result."""

    def __init__(self) -> None:
        self._jobs: dict[str, str] = {}

    @property
    def name(self) -> str:
        return "stub"

    async def submit(self, request: LipSyncRequest) -> str:
        job_id = f"stub-lipsync-{uuid4().hex[:12]}"
        self._jobs[job_id] = request.video_url
        return job_id

    async def fetch_status(self, job_id: str) -> JobStatus:
        source = self._jobs.get(job_id, f"https://simulated.invalid/lipsync/{job_id}.mp4")
        return JobStatus(state=JobState.SUCCEEDED, asset_url=source)
