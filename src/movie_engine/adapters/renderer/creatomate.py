"""Creatomate cloud rendering provider."""

from typing import Any

import httpx

from movie_engine.adapters.base import JobStatus, check_response
from movie_engine.adapters.renderer.base import RendererProvider, RenderRequest
from movie_engine.errors import ProviderError
from movie_engine.logging import get_logger

logger = get_logger(__name__)


class CreatomateRenderer(RendererProvider):
    """Renders movies with Creatomate's JSON composition API.

    ``POST /renders`` with a source composition returns a list of renders;
    ``GET /renders/{id}`` reports planned, rendering, succeeded or failed
    with the output under ``url`` and failures under ``error_message``.
    """

    asset_paths = ("url",)
    error_paths = ("error_message", "error", "message")

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.creatomate.com/v1",
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "creatomate"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_composition(self, request: RenderRequest) -> dict[str, Any]:
        """Lay the clips out back to back with dialogue and music tracks."""
        width, height = request.dimensions
        elements: list[dict[str, Any]] = []
        audio_elements: list[dict[str, Any]] = []
        current_time = 0.0

        for clip in sorted(request.clips, key=lambda c: c.scene_number):
            elements.append(
                {
                    "type": "video",
                    "track": 1,
                    "source": clip.video_url,
                    "time": current_time,
                    "duration": clip.duration_seconds,
                    "fit": "cover",
                }
            )
            if clip.audio_url:
                audio_elements.append(
                    {
                        "type": "audio",
                        "track": 2,
                        "source": clip.audio_url,
                        "time": current_time,
                        "volume": "100%",
                    }
                )
            current_time += clip.duration_seconds

        elements.extend(audio_elements)

        if request.music_url:
            elements.append(
                {
                    "type": "audio",
                    "track": 3,
                    "source": request.music_url,
                    "time": 0,
                    "duration": current_time,
                    "volume": f"{int(request.music_volume * 100)}%",
                    "audio_fade_out": 2.0,
                    "loop": True,
                }
            )

        return {
            "source": {
                "output_format": request.output_format,
                "width": width,
                "height": height,
                "frame_rate": request.fps,
                "duration": current_time,
                "elements": elements,
            },
            "metadata": request.quality,
        }

    async def submit(self, request: RenderRequest) -> str:
        payload = self.build_composition(request)

        logger.info(
            "creatomate_render_submitting",
            clip_count=len(request.clips),
            quality=request.quality,
            has_music=request.music_url is not None,
        )

        async with httpx.AsyncClient(timeout=60.0) as client:
            response = await client.post(
                f"{self.base_url}/renders",
                headers=self._headers(),
                json=payload,
            )
        check_response(response, self.name)

        data = response.json()
        renders = data if isinstance(data, list) else [data]
        render_id = renders[0].get("id") if renders else None
        if not render_id:
            raise ProviderError("No render ID returned from Creatomate", provider=self.name)

        logger.info("creatomate_render_submitted", render_id=render_id, quality=request.quality)
        return render_id

    async def fetch_status(self, job_id: str) -> JobStatus:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(
                f"{self.base_url}/renders/{job_id}",
                headers=self._headers(),
            )
        check_response(response, self.name)
        return self.parse_status(response.json())
