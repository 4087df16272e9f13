"""ElevenLabs text-to-speech adapter."""

import httpx

from movie_engine.adapters.base import check_response
from movie_engine.adapters.voiceover.base import LineAudio, SpokenLine, VoiceoverProvider
from movie_engine.logging import get_logger

logger = get_logger(__name__)

# Stock voices, matched by keyword against a character's voice description
STOCK_VOICES: dict[str, str] = {
    "deep": "VR6AewLTigWG4xSOukaG",
    "gravel": "VR6AewLTigWG4xSOukaG",
    "dramatic": "29vD33N1CtxCmqQRPOHJ",
    "young": "ErXwobaYiN019PkySvjV",
    "energetic": "ErXwobaYiN019PkySvjV",
    "soft": "EXAVITQu4vr4xnSDxMaL",
    "warm": "EXAVITQu4vr4xnSDxMaL",
}
NARRATOR_VOICE = "21m00Tcm4TlvDq8ikWAM"


def pick_voice(description: str | None) -> str:
    text = (description or "").lower()
    for keyword, voice_id in STOCK_VOICES.items():
        if keyword in text:
            return voice_id
    return NARRATOR_VOICE


class ElevenLabsProvider(VoiceoverProvider):
    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        voice_overrides: dict[str, str] | None = None,
    ) -> None:
        self.api_key = api_key
        self.model_id = model or "eleven_multilingual_v2"
        self.base_url = (base_url or "https://api.elevenlabs.io/v1").rstrip("/")
        # character name -> voice id, from the binding's config
        self.voice_overrides = voice_overrides or {}

    @property
    def name(self) -> str:
        return "elevenlabs"

    def voice_for(self, line: SpokenLine) -> str:
        return self.voice_overrides.get(line.character) or pick_voice(line.voice_description)

    async def synthesize_line(self, line: SpokenLine) -> LineAudio:
        voice_id = self.voice_for(line)
        async with httpx.AsyncClient(timeout=120.0) as client:
            response = await client.post(
                f"{self.base_url}/text-to-speech/{voice_id}",
                headers={"xi-api-key": self.api_key},
                json={
                    "text": line.text,
                    "model_id": self.model_id,
                    "voice_settings": {"stability": 0.5, "similarity_boost": 0.75},
                },
            )
        check_response(response, self.name)

        logger.debug(
            "elevenlabs_line_synthesized",
            character=line.character,
            voice_id=voice_id,
            bytes=len(response.content),
        )
        return LineAudio(audio_data=response.content, voice_id=voice_id)

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.base_url}/user", headers={"xi-api-key": self.api_key})
        except httpx.HTTPError:
            return False
        return response.is_success
