"""Base interface for video generation providers."""

from dataclasses import dataclass
from typing import Any

from movie_engine.adapters.base import JobProvider


@dataclass
class VideoJobRequest:
    """Request for one scene's video."""

    prompt: str
    duration_seconds: float = 5.0
    aspect_ratio: str = "16:9"
    reference_image_url: str | None = None
    options: dict[str, Any] | None = None


@dataclass(frozen=True)
class VideoModelSpec:
    """Parameters a specific model accepts.

    Providers reject requests whose duration or ratio is not in these sets, so
    requests are snapped onto them before submission.
    """

    model: str
    durations: tuple[int, ...]
    ratios: tuple[str, ...]
    supports_text: bool = True
    supports_image: bool = False

    def select_duration(self, requested: float) -> int:
        """Nearest supported duration (ties go to the shorter one)."""
        return min(self.durations, key=lambda d: (abs(d - requested), d))

    def select_ratio(self, requested: str) -> str:
        """Supported ratio whose shape is closest to the requested one."""
        if requested in self.ratios:
            return requested
        target = _ratio_value(requested)
        return min(self.ratios, key=lambda r: abs(_ratio_value(r) - target))


def _ratio_value(ratio: str) -> float:
    """Width/height of '16:9' or '1280:720' style ratios (1.0 if unparseable)."""
    try:
        width, height = (float(part) for part in ratio.split(":"))
    except ValueError:
        return 1.0
    return width / height if height else 1.0


@dataclass
class PreparedVideoJob:
    """A request after snapping onto a model's supported parameters."""

    model: VideoModelSpec
    duration: int
    ratio: str


class VideoGenProvider(JobProvider):
    """Abstract base class for video generation providers.

    Implementations:
    - StubVideoGenProvider: synthetic results for simulation mode
    - RunwayProvider: Runway tasks API
    - LumaProvider: Luma Dream Machine generations API
    - KlingProvider: Kling models on the fal.ai queue
    """

    # Model name -> spec; the first entry is the default
    models: dict[str, VideoModelSpec] = {}

    def __init__(self, model: str | None = None) -> None:
        self.model_name = model

    def model_for(self, request: VideoJobRequest) -> VideoModelSpec:
        """Pick the model spec for a request.

        Uses the configured model when it can handle the request's input
        (text or reference image), otherwise the first model that can.
        """
        wants_image = request.reference_image_url is not None
        candidates = list(self.models.values())
        if self.model_name and self.model_name in self.models:
            candidates.insert(0, self.models[self.model_name])
        for spec in candidates:
            if (wants_image and spec.supports_image) or (not wants_image and spec.supports_text):
                return spec
        return candidates[0]

    def prepare(self, request: VideoJobRequest) -> PreparedVideoJob:
        """Snap a request onto the chosen model's valid duration and ratio."""
        spec = self.model_for(request)
        return PreparedVideoJob(
            model=spec,
            duration=spec.select_duration(request.duration_seconds),
            ratio=spec.select_ratio(request.aspect_ratio),
        )
