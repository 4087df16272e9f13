"""Voice synthesis adapters."""

from movie_engine.adapters.voiceover.base import (
    SpokenLine,
    VoiceoverProvider,
    VoiceoverRequest,
    VoiceoverResult,
)
from movie_engine.adapters.voiceover.elevenlabs import ElevenLabsProvider
from movie_engine.adapters.voiceover.stub import StubVoiceoverProvider

__all__ = [
    "ElevenLabsProvider",
    "SpokenLine",
    "StubVoiceoverProvider",
    "VoiceoverProvider",
    "VoiceoverRequest",
    "VoiceoverResult",
]
