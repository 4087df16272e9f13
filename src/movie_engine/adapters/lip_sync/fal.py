"""Lip-sync via fal.ai hosted models."""

from movie_engine.adapters.base import JobStatus
from movie_engine.adapters.fal_queue import FalQueue
from movie_engine.adapters.lip_sync.base import LipSyncProvider, LipSyncRequest


class FalLipSyncProvider(LipSyncProvider):
    """Lip-sync on the fal.ai queue (sync-lipsync by default)."""

    DEFAULT_APPLICATION = "fal-ai/sync-lipsync"
    asset_paths = ("video.url", "video_url", "url")

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        self.queue = FalQueue(model or self.DEFAULT_APPLICATION, api_key)

    @property
    def name(self) -> str:
        return "fal_lipsync"

    async def submit(self, request: LipSyncRequest) -> str:
        return await self.queue.submit(
            {"video_url": request.video_url, "audio_url": request.audio_url}
        )

    async def fetch_status(self, job_id: str) -> JobStatus:
        return await self.queue.fetch_status(job_id, asset_paths=self.asset_paths)

    async def health_check(self) -> bool:
        return self.queue.is_configured()
