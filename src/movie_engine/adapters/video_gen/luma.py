"""Luma AI video generation provider."""

from typing import Any

import httpx

from movie_engine.adapters.base import JobStatus, check_response
from movie_engine.adapters.video_gen.base import (
    VideoGenProvider,
    VideoJobRequest,
    VideoModelSpec,
)
from movie_engine.errors import ProviderError
from movie_engine.logging import get_logger

logger = get_logger(__name__)

LUMA_RATIOS = ("16:9", "9:16", "1:1", "4:3", "3:4", "21:9", "9:21")


class LumaProvider(VideoGenProvider):
    """Luma AI (Dream Machine) video generation provider.

    Generations report ``state`` (queued, dreaming, completed, failed) with the
    clip under ``assets.video`` and failures under ``failure_reason``. A
    reference image is passed as the first keyframe.
    """

    state_key = "state"
    asset_paths = ("assets.video", "video_url", "url")
    error_paths = ("failure_reason", "error", "message")

    models = {
        "ray-2": VideoModelSpec(
            model="ray-2",
            durations=(5, 9),
            ratios=LUMA_RATIOS,
            supports_image=True,
        ),
        "ray-flash-2": VideoModelSpec(
            model="ray-flash-2",
            durations=(5, 9),
            ratios=LUMA_RATIOS,
            supports_image=True,
        ),
    }

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
    ) -> None:
        super().__init__(model=model)
        self.api_key = api_key
        self.base_url = (base_url or "https://api.lumalabs.ai/dream-machine/v1").rstrip("/")

    @property
    def name(self) -> str:
        return "luma"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, request: VideoJobRequest) -> dict[str, Any]:
        prepared = self.prepare(request)
        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "model": prepared.model.model,
            "aspect_ratio": prepared.ratio,
            "duration": f"{prepared.duration}s",
            "loop": False,
        }
        if request.reference_image_url:
            payload["keyframes"] = {
                "frame0": {"type": "image", "url": request.reference_image_url},
            }
        if request.options:
            payload.update(request.options)
        return payload

    async def submit(self, request: VideoJobRequest) -> str:
        payload = self.build_payload(request)

        logger.info(
            "luma_generation_submitting",
            prompt_length=len(request.prompt),
            aspect_ratio=payload["aspect_ratio"],
        )

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{self.base_url}/generations",
                headers=self._headers(),
                json=payload,
            )
        check_response(response, self.name)

        generation_id = response.json().get("id")
        if not generation_id:
            raise ProviderError("No generation ID returned from Luma", provider=self.name)

        logger.info("luma_generation_submitted", generation_id=generation_id)
        return generation_id

    async def fetch_status(self, job_id: str) -> JobStatus:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(
                f"{self.base_url}/generations/{job_id}",
                headers=self._headers(),
            )
        check_response(response, self.name)
        return self.parse_status(response.json())
