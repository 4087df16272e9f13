"""Interface for the image capability: character portraits and cover art."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum


class ImagePurpose(StrEnum):
    PORTRAIT = "portrait"  # character reference, fed to image-to-video
    POSTER = "poster"


@dataclass
class ImageGenRequest:
    prompt: str
    aspect_ratio: str = "16:9"
    purpose: ImagePurpose = ImagePurpose.PORTRAIT
    style: str | None = None

    @property
    def full_prompt(self) -> str:
        return f"{self.style}, {self.prompt}" if self.style else self.prompt


@dataclass
class ImageGenResult:
    """A generated image hosted by the provider (URLs expire; copy to storage)."""

    image_url: str
    revised_prompt: str | None = None


class ImageGenProvider(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def generate(self, request: ImageGenRequest) -> ImageGenResult:
        """Generate one image. Raises ``ProviderError`` on rejection."""

    async def health_check(self) -> bool:
        return True
