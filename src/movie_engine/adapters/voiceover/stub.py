"""Voice provider for simulation mode."""

from movie_engine.adapters.voiceover.base import LineAudio, SpokenLine, VoiceoverProvider


class StubVoiceoverProvider(VoiceoverProvider):
    """Emits a tagged placeholder per line instead of audio."""

    @property
    def name(self) -> str:
        return "stub"

    async def synthesize_line(self, line: SpokenLine) -> LineAudio:
        return LineAudio(
            audio_data=f"[{line.character}] {line.text}\n".encode(),
            voice_id=f"stub-{line.character.lower() or 'narrator'}",
        )
