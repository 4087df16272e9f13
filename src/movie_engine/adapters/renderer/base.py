"""Base interface for movie rendering providers."""

from abc import abstractmethod
from dataclasses import dataclass, field

from movie_engine.adapters.base import JobProvider

# Output size per quality tier, landscape orientation
QUALITY_DIMENSIONS: dict[str, tuple[int, int]] = {
    "2160p": (3840, 2160),
    "1080p": (1920, 1080),
    "720p": (1280, 720),
    "480p": (854, 480),
}


@dataclass
class RenderClip:
    """One scene on the movie timeline."""

    scene_number: int
    video_url: str
    duration_seconds: float
    # Dialogue track, omitted when the clip is already lip-synced
    audio_url: str | None = None


@dataclass
class RenderRequest:
    """Stitch scene clips into one movie at a given quality tier."""

    clips: list[RenderClip]
    quality: str = "1080p"
    aspect_ratio: str = "16:9"
    music_url: str | None = None
    music_volume: float = 0.3
    output_format: str = "mp4"
    fps: int = 30
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def dimensions(self) -> tuple[int, int]:
        width, height = QUALITY_DIMENSIONS.get(self.quality, QUALITY_DIMENSIONS["1080p"])
        if self.aspect_ratio in ("9:16", "3:4", "4:5"):
            return height, width
        if self.aspect_ratio == "1:1":
            return height, height
        return width, height

    @property
    def total_duration(self) -> float:
        return sum(clip.duration_seconds for clip in self.clips)


class RendererProvider(JobProvider):
    """Abstract base class for rendering providers.

    Implementations:
    - CreatomateRenderer: Creatomate cloud render API
    - StubRendererProvider: synthetic output URLs
    """

    @abstractmethod
    async def submit(self, request: RenderRequest) -> str:
        """Submit a render and return its id."""
        ...
