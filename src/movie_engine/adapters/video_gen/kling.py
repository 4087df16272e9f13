"""Kling video generation provider via fal.ai."""

from typing import Any

from movie_engine.adapters.base import JobStatus
from movie_engine.adapters.fal_queue import FalQueue
from movie_engine.adapters.video_gen.base import (
    VideoGenProvider,
    VideoJobRequest,
    VideoModelSpec,
)
from movie_engine.logging import get_logger

logger = get_logger(__name__)


class KlingProvider(VideoGenProvider):
    """Kling video generation on the fal.ai queue.

    Text-to-video and image-to-video are separate fal applications. The job id
    handed back to callers is ``<application>|<request_id>`` so status checks
    hit the same application the request was submitted to.

    fal expects durations as strings ("5" or "10").
    """

    models = {
        "fal-ai/kling-video/v2.6/pro/text-to-video": VideoModelSpec(
            model="fal-ai/kling-video/v2.6/pro/text-to-video",
            durations=(5, 10),
            ratios=("16:9", "9:16", "1:1"),
        ),
        "fal-ai/kling-video/o1/image-to-video": VideoModelSpec(
            model="fal-ai/kling-video/o1/image-to-video",
            durations=(5, 10),
            ratios=("16:9", "9:16", "1:1"),
            supports_text=False,
            supports_image=True,
        ),
    }

    asset_paths = ("video.url", "video_url", "url")

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        super().__init__(model=model)
        self.api_key = api_key

    @property
    def name(self) -> str:
        return "kling"

    def build_arguments(self, request: VideoJobRequest) -> tuple[str, dict[str, Any]]:
        prepared = self.prepare(request)
        arguments: dict[str, Any] = {
            "prompt": request.prompt,
            "duration": str(prepared.duration),
            "aspect_ratio": prepared.ratio,
            "negative_prompt": "blur, distort, low quality",
            "generate_audio": False,
        }
        if request.reference_image_url and prepared.model.supports_image:
            arguments["start_image_url"] = request.reference_image_url
        if request.options:
            arguments.update(request.options)
        return prepared.model.model, arguments

    async def submit(self, request: VideoJobRequest) -> str:
        application, arguments = self.build_arguments(request)
        logger.info(
            "kling_generation_submitting",
            model=application,
            duration=arguments["duration"],
            has_reference="start_image_url" in arguments,
        )
        request_id = await FalQueue(application, self.api_key).submit(arguments)
        return f"{application}|{request_id}"

    async def fetch_status(self, job_id: str) -> JobStatus:
        application, _, request_id = job_id.partition("|")
        return await FalQueue(application, self.api_key).fetch_status(
            request_id, asset_paths=self.asset_paths
        )

    async def health_check(self) -> bool:
        return FalQueue(next(iter(self.models)), self.api_key).is_configured()
