"""Final assembly: multi-quality renders and cover art."""

import asyncio
import io
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

import httpx
from PIL import Image

from movie_engine.adapters.image_gen.base import ImageGenProvider, ImageGenRequest, ImagePurpose
from movie_engine.adapters.renderer.base import RenderClip, RendererProvider, RenderRequest
from movie_engine.config import settings
from movie_engine.db.models import MovieSceneModel
from movie_engine.errors import ProviderError
from movie_engine.logging import get_logger
from movie_engine.services.poller import PollStatus, SleepFunc, TaskPoller
from movie_engine.services.storage import StorageService

logger = get_logger(__name__)

THUMBNAIL_MAX_DIM = 480


@dataclass
class AssemblyResult:
    # quality tier -> stored URL, in requested order
    video_urls: dict[str, str] = field(default_factory=dict)

    @property
    def primary_url(self) -> str | None:
        return next(iter(self.video_urls.values()), None)


@dataclass
class CoverResult:
    poster_url: str
    thumbnail_url: str


def build_clips(scenes: Sequence[MovieSceneModel]) -> list[RenderClip]:
    """Timeline clips in scene order, preferring lip-synced video.

    A lip-synced clip already carries its dialogue, so its separate audio
    track is dropped.

    Raises:
        ValueError: If any scene has no finished video.
    """
    clips = []
    for scene in sorted(scenes, key=lambda s: s.scene_number):
        video_url = scene.lip_sync_video_url or scene.video_url
        if not video_url:
            raise ValueError(f"Scene {scene.scene_number} has no video to assemble")
        clips.append(
            RenderClip(
                scene_number=scene.scene_number,
                video_url=video_url,
                duration_seconds=scene.duration_seconds,
                audio_url=None if scene.lip_sync_video_url else scene.audio_url,
            )
        )
    return clips


class MovieAssembler:
    """Renders the movie once per quality tier and copies outputs to storage."""

    def __init__(
        self,
        renderer: RendererProvider,
        storage: StorageService,
        sleep: SleepFunc = asyncio.sleep,
        poll_interval_seconds: float | None = None,
        poll_max_attempts: int | None = None,
        max_poll_rounds: int | None = None,
    ) -> None:
        self.renderer = renderer
        self.storage = storage
        self.poller = TaskPoller(
            renderer,
            interval_seconds=poll_interval_seconds,
            max_attempts=poll_max_attempts,
            sleep=sleep,
        )
        self.max_poll_rounds = (
            settings.scene_max_poll_rounds if max_poll_rounds is None else max_poll_rounds
        )

    async def assemble(
        self,
        movie_id: UUID,
        clips: list[RenderClip],
        qualities: Sequence[str],
        aspect_ratio: str = "16:9",
        music_url: str | None = None,
    ) -> AssemblyResult:
        """Render and store every requested quality tier.

        Raises:
            ProviderError: If a render fails or never finishes.
        """
        result = AssemblyResult()
        for quality in qualities:
            request = RenderRequest(
                clips=clips,
                quality=quality,
                aspect_ratio=aspect_ratio,
                music_url=music_url,
                metadata={"movie_id": str(movie_id)},
            )
            poll = await self.poller.run(request, max_rounds=self.max_poll_rounds)
            if poll.status is PollStatus.FAILED:
                raise ProviderError(
                    poll.error or "Render failed", provider=self.renderer.name
                )
            if poll.status is PollStatus.TIMED_OUT:
                raise ProviderError(
                    f"Render {poll.job_id} for {quality} still pending after polling",
                    provider=self.renderer.name,
                )

            stored = await self.storage.store_from_url(
                poll.asset_url or "", "final_video", movie_id, ext=".mp4"
            )
            result.video_urls[quality] = stored.url
            logger.info(
                "movie_quality_rendered",
                movie_id=str(movie_id),
                quality=quality,
                url=stored.url[:100],
            )
        return result

    async def create_cover(
        self,
        movie_id: UUID,
        image_provider: ImageGenProvider,
        title: str,
        logline: str,
        aspect_ratio: str = "16:9",
    ) -> CoverResult:
        """Generate cover art and a thumbnail, both written to storage."""
        image = await image_provider.generate(
            ImageGenRequest(
                prompt=(
                    f"Cinematic movie poster for '{title}'. {logline} "
                    "No text, no lettering, dramatic composition."
                ),
                aspect_ratio=aspect_ratio,
                purpose=ImagePurpose.POSTER,
            )
        )

        if self.storage.simulated:
            return CoverResult(poster_url=image.image_url, thumbnail_url=image.image_url)

        async with httpx.AsyncClient(timeout=120.0, follow_redirects=True) as client:
            response = await client.get(image.image_url)
            response.raise_for_status()
        poster_bytes = response.content

        poster = await self.storage.store_bytes(
            poster_bytes, "cover", movie_id, ext=".png", mime_type="image/png"
        )
        thumbnail = await self.storage.store_bytes(
            make_thumbnail(poster_bytes), "cover", movie_id, ext=".jpg", mime_type="image/jpeg"
        )
        return CoverResult(poster_url=poster.url, thumbnail_url=thumbnail.url)


def make_thumbnail(image_bytes: bytes, max_dim: int = THUMBNAIL_MAX_DIM) -> bytes:
    """Downscale an image to fit ``max_dim`` and encode it as JPEG."""
    with Image.open(io.BytesIO(image_bytes)) as img:
        thumb = img.convert("RGB")
        thumb.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)
        out = io.BytesIO()
        thumb.save(out, format="JPEG", quality=85)
    return out.getvalue()
