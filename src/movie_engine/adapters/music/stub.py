"""Stub music provider for simulation mode."""

from uuid import uuid4

from movie_engine.adapters.base import JobState, JobStatus
from movie_engine.adapters.music.base import MusicProvider, MusicRequest


class StubMusicProvider(MusicProvider):
    """Returns a synthetic soundtrack URL."""

    @property
    def name(self) -> str:
        return "stub"

    async def submit(self, request: MusicRequest) -> str:
        return f"stub-music-{uuid4().hex[:12]}"

    async def fetch_status(self, job_id: str) -> JobStatus:
        return JobStatus(
            state=JobState.SUCCEEDED,
            asset_url=f"https://simulated.invalid/music/{job_id}.mp3",
        )
