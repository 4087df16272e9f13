"""Adapters for external generation services."""

from movie_engine.adapters.base import JobProvider, JobState, JobStatus
from movie_engine.adapters.image_gen.base import ImageGenProvider
from movie_engine.adapters.lip_sync.base import LipSyncProvider
from movie_engine.adapters.llm.base import LLMProvider
from movie_engine.adapters.music.base import MusicProvider
from movie_engine.adapters.renderer.base import RendererProvider
from movie_engine.adapters.video_gen.base import VideoGenProvider
from movie_engine.adapters.voiceover.base import VoiceoverProvider

__all__ = [
    "ImageGenProvider",
    "JobProvider",
    "JobState",
    "JobStatus",
    "LLMProvider",
    "LipSyncProvider",
    "MusicProvider",
    "RendererProvider",
    "VideoGenProvider",
    "VoiceoverProvider",
]
