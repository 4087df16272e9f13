"""Stub renderer for simulation mode."""

from uuid import uuid4

from movie_engine.adapters.base import JobState, JobStatus
from movie_engine.adapters.renderer.base import RendererProvider, RenderRequest
from movie_engine.logging import get_logger

logger = get_logger(__name__)


class StubRendererProvider(RendererProvider):
    """Returns a synthetic output URL per render."""

    def __init__(self) -> None:
        self._renders: dict[str, str] = {}

    @property
    def name(self) -> str:
        return "stub"

    async def submit(self, request: RenderRequest) -> str:
        render_id = f"stub-render-{uuid4().hex[:12]}"
        self._renders[render_id] = request.quality
        logger.info(
            "stub_render_submitted",
            render_id=render_id,
            clip_count=len(request.clips),
            quality=request.quality,
        )
        return render_id

    async def fetch_status(self, job_id: str) -> JobStatus:
        quality = self._renders.get(job_id, "1080p")
        return JobStatus(
            state=JobState.SUCCEEDED,
            asset_url=f"https://simulated.invalid/renders/{job_id}_{quality}.mp4",
        )
