"""Music generation adapters."""

from movie_engine.adapters.music.base import MusicProvider, MusicRequest
from movie_engine.adapters.music.fal import FalMusicProvider
from movie_engine.adapters.music.stub import StubMusicProvider

__all__ = [
    "FalMusicProvider",
    "MusicProvider",
    "MusicRequest",
    "StubMusicProvider",
]
