"""Music generation via fal.ai hosted models."""

from movie_engine.adapters.base import JobStatus
from movie_engine.adapters.fal_queue import FalQueue
from movie_engine.adapters.music.base import MusicProvider, MusicRequest


class FalMusicProvider(MusicProvider):
    """Soundtrack generation on the fal.ai queue (stable-audio by default)."""

    DEFAULT_APPLICATION = "fal-ai/stable-audio"
    # stable-audio caps a single clip at 47 seconds
    MAX_SECONDS = 47
    asset_paths = ("audio_file.url", "audio.url", "audio_url", "url")

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.queue = FalQueue(model or self.DEFAULT_APPLICATION, api_key)

    @property
    def name(self) -> str:
        return "fal_music"

    async def submit(self, request: MusicRequest) -> str:
        seconds = max(1, min(int(request.duration_seconds), self.MAX_SECONDS))
        return await self.queue.submit({"prompt": request.prompt, "seconds_total": seconds})

    async def fetch_status(self, job_id: str) -> JobStatus:
        return await self.queue.fetch_status(job_id, asset_paths=self.asset_paths)

    async def health_check(self) -> bool:
        return self.queue.is_configured()
