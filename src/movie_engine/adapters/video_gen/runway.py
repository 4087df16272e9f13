"""Runway video generation provider."""

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


class RunwayProvider(VideoGenProvider):
    """Runway (Gen / Veo models) video generation provider.

    Jobs are Runway "tasks": ``POST /text_to_video`` or ``POST /image_to_video``
    returns a task id, and ``GET /tasks/{id}`` reports PENDING, THROTTLED,
    RUNNING, SUCCEEDED or FAILED with the clip under ``output[0]``.

    Each model accepts its own fixed set of durations and ratios; anything
    else is rejected with a 400, so requests are snapped onto the model spec.
    """

    API_VERSION = "2024-11-06"
    DEFAULT_BASE_URL = "https://api.dev.runwayml.com/v1"

    models = {
        "veo3.1": VideoModelSpec(
            model="veo3.1",
            durations=(4, 6, 8),
            ratios=("1280:720", "720:1280", "1080:1920", "1920:1080"),
            supports_image=True,
        ),
        "gen4.5": VideoModelSpec(
            model="gen4.5",
            durations=(5, 8, 10),
            ratios=("1280:720", "720:1280", "1104:832", "960:960", "832:1104"),
            supports_image=True,
        ),
        "veo3": VideoModelSpec(
            model="veo3",
            durations=(4, 6, 8),
            ratios=("1280:720",),
        ),
        "gen3a_turbo": VideoModelSpec(
            model="gen3a_turbo",
            durations=(10,),
            ratios=("1280:768", "768:1280"),
            supports_text=False,
            supports_image=True,
        ),
    }

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(model=model)
        self.api_key = api_key
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "runway"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Runway-Version": self.API_VERSION,
        }

    def build_payload(self, request: VideoJobRequest) -> tuple[str, dict[str, Any]]:
        """Return the endpoint path and JSON body for a request."""
        prepared = self.prepare(request)
        payload: dict[str, Any] = {
            "model": prepared.model.model,
            "promptText": request.prompt[:1000],
            "ratio": prepared.ratio,
            "duration": prepared.duration,
        }
        if request.options:
            payload.update(request.options)

        if request.reference_image_url and prepared.model.supports_image:
            payload["promptImage"] = request.reference_image_url
            return "/image_to_video", payload
        return "/text_to_video", payload

    async def submit(self, request: VideoJobRequest) -> str:
        """Submit a generation task and return its id."""
        path, payload = self.build_payload(request)

        logger.info(
            "runway_task_submitting",
            endpoint=path,
            model=payload["model"],
            ratio=payload["ratio"],
            duration=payload["duration"],
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}{path}",
                headers=self._headers(),
                json=payload,
            )
        check_response(response, self.name)

        task_id = response.json().get("id")
        if not task_id:
            raise ProviderError("No task ID returned from Runway", provider=self.name)

        logger.info("runway_task_submitted", task_id=task_id)
        return task_id

    async def fetch_status(self, job_id: str) -> JobStatus:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.base_url}/tasks/{job_id}",
                headers=self._headers(),
            )
        check_response(response, self.name)
        return self.parse_status(response.json())

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(
                    f"{self.base_url}/organization",
                    headers=self._headers(),
                )
            return response.status_code == 200
        except httpx.HTTPError:
            return False
