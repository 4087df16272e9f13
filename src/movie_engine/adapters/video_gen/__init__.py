"""Video generation adapters."""

from movie_engine.adapters.video_gen.base import (
    PreparedVideoJob,
    VideoGenProvider,
    VideoJobRequest,
    VideoModelSpec,
)
from movie_engine.adapters.video_gen.kling import KlingProvider
from movie_engine.adapters.video_gen.luma import LumaProvider
from movie_engine.adapters.video_gen.runway import RunwayProvider
from movie_engine.adapters.video_gen.stub import StubVideoGenProvider

__all__ = [
    "KlingProvider",
    "LumaProvider",
    "PreparedVideoJob",
    "RunwayProvider",
    "StubVideoGenProvider",
    "VideoGenProvider",
    "VideoJobRequest",
    "VideoModelSpec",
]
