"""OpenAI images API adapter (DALL-E 3)."""

import httpx

from movie_engine.adapters.base import check_response
from movie_engine.adapters.image_gen.base import (
    ImageGenProvider,
    ImageGenRequest,
    ImageGenResult,
    ImagePurpose,
)
from movie_engine.errors import ProviderError
from movie_engine.logging import get_logger

logger = get_logger(__name__)

SIZES = {
    "16:9": "1792x1024",
    "9:16": "1024x1792",
    "1:1": "1024x1024",
}


def size_for(aspect_ratio: str) -> str:
    """Closest supported size; anything wider than tall is landscape."""
    if aspect_ratio in SIZES:
        return SIZES[aspect_ratio]
    try:
        width, height = (float(part) for part in aspect_ratio.split(":"))
    except ValueError:
        return SIZES["16:9"]
    if width == height:
        return SIZES["1:1"]
    return SIZES["16:9"] if width > height else SIZES["9:16"]


class OpenAIDalleProvider(ImageGenProvider):
    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model or "dall-e-3"
        self.base_url = (base_url or "https://api.openai.com/v1").rstrip("/")

    @property
    def name(self) -> str:
        return "openai-images"

    def build_payload(self, request: ImageGenRequest) -> dict[str, object]:
        return {
            "model": self.model,
            "prompt": request.full_prompt,
            "n": 1,
            "size": size_for(request.aspect_ratio),
            # Portraits are references for video models; keep them plain
            "style": "natural" if request.purpose is ImagePurpose.PORTRAIT else "vivid",
            "quality": "hd",
        }

    async def generate(self, request: ImageGenRequest) -> ImageGenResult:
        payload = self.build_payload(request)
        logger.info(
            "image_generation_started",
            provider=self.name,
            purpose=request.purpose.value,
            size=payload["size"],
        )

        async with httpx.AsyncClient(timeout=120.0) as client:
            response = await client.post(
                f"{self.base_url}/images/generations",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=payload,
            )
        check_response(response, self.name)

        items = response.json().get("data") or []
        if not items or not items[0].get("url"):
            raise ProviderError("No image URL in response", provider=self.name)
        return ImageGenResult(image_url=items[0]["url"], revised_prompt=items[0].get("revised_prompt"))
