"""Base interface for lip-sync providers."""

from abc import abstractmethod
from dataclasses import dataclass

from movie_engine.adapters.base import JobProvider


@dataclass
class LipSyncRequest:
    """Align a scene clip's mouth movement to its dialogue track."""

    video_url: str
    audio_url: str


class LipSyncProvider(JobProvider):
    """Abstract base class for lip-sync providers."""

    @abstractmethod
    async def submit(self, request: LipSyncRequest) -> str:
        """Submit a job and return the provider's job id."""
        ...
