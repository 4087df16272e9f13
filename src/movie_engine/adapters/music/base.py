"""Base interface for music generation providers."""

from abc import abstractmethod
from dataclasses import dataclass

from movie_engine.adapters.base import JobProvider


@dataclass
class MusicRequest:
    """Request for a soundtrack covering the whole movie."""

    prompt: str
    duration_seconds: float = 60.0


class MusicProvider(JobProvider):
    """Abstract base class for music generation providers."""

    @abstractmethod
    async def submit(self, request: MusicRequest) -> str:
        """Submit a job and return the provider's job id."""
        ...
