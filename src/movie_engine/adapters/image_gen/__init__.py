"""Image generation adapters."""

from movie_engine.adapters.image_gen.base import (
    ImageGenProvider,
    ImageGenRequest,
    ImageGenResult,
    ImagePurpose,
)
from movie_engine.adapters.image_gen.openai_dalle import OpenAIDalleProvider
from movie_engine.adapters.image_gen.stub import StubImageGenProvider

__all__ = [
    "ImageGenProvider",
    "ImageGenRequest",
    "ImageGenResult",
    "ImagePurpose",
    "OpenAIDalleProvider",
    "StubImageGenProvider",
]
