"""Interface for the voice capability.

A scene's dialogue is synthesized line by line, each in its speaker's voice,
and the clips are joined into a single scene track. MP3 streams concatenate
frame-for-frame, so joining is byte concatenation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class SpokenLine:
    character: str
    text: str
    voice_description: str | None = None


@dataclass
class VoiceoverRequest:
    """All dialogue of one scene, in speaking order."""

    lines: list[SpokenLine]
    output_format: str = "mp3"

    @property
    def word_count(self) -> int:
        return sum(len(line.text.split()) for line in self.lines)


@dataclass
class LineAudio:
    audio_data: bytes
    voice_id: str


@dataclass
class VoiceoverResult:
    audio_data: bytes
    duration_seconds: float
    mime_type: str = "audio/mpeg"
    voices: dict[str, str] = field(default_factory=dict)  # character -> voice id


# Speech rate used to estimate track length when the provider reports none
WORDS_PER_MINUTE = 150


class VoiceoverProvider(ABC):
    """Synchronous text-to-speech; there is no job to poll."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def synthesize_line(self, line: SpokenLine) -> LineAudio:
        """Speak one line. Raises ``ProviderError`` on rejection."""

    async def generate(self, request: VoiceoverRequest) -> VoiceoverResult:
        """Synthesize a scene's dialogue into one track."""
        if not request.lines:
            raise ValueError("Voiceover request has no lines")

        chunks: list[bytes] = []
        voices: dict[str, str] = {}
        for line in request.lines:
            audio = await self.synthesize_line(line)
            chunks.append(audio.audio_data)
            voices.setdefault(line.character, audio.voice_id)

        return VoiceoverResult(
            audio_data=b"".join(chunks),
            duration_seconds=request.word_count / WORDS_PER_MINUTE * 60,
            voices=voices,
        )

    async def health_check(self) -> bool:
        return True
