"""Image provider for simulation mode."""

from uuid import uuid4

from movie_engine.adapters.image_gen.base import ImageGenProvider, ImageGenRequest, ImageGenResult


class StubImageGenProvider(ImageGenProvider):
    @property
    def name(self) -> str:
        return "stub"

    async def generate(self, request: ImageGenRequest) -> ImageGenResult:
        return ImageGenResult(
            image_url=f"https://simulated.invalid/images/{request.purpose.value}-{uuid4().hex[:12]}.png",
        )
