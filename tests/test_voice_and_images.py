"""Tests for voice synthesis and image generation adapters."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from movie_engine.adapters.image_gen.base import ImageGenRequest, ImagePurpose
from movie_engine.adapters.image_gen.openai_dalle import OpenAIDalleProvider, size_for
from movie_engine.adapters.image_gen.stub import StubImageGenProvider
from movie_engine.adapters.voiceover.base import SpokenLine, VoiceoverRequest
from movie_engine.adapters.voiceover.elevenlabs import NARRATOR_VOICE, ElevenLabsProvider, pick_voice
from movie_engine.adapters.voiceover.stub import StubVoiceoverProvider
from movie_engine.errors import ProviderError


def ok(content: bytes = b"ID3audio", url: str = "https://api.test") -> httpx.Response:
    return httpx.Response(200, content=content, request=httpx.Request("POST", url))


class TestVoiceover:
    @pytest.mark.asyncio
    async def test_scene_track_joins_lines_in_order(self) -> None:
        request = VoiceoverRequest(
            lines=[
                SpokenLine(character="Mara", text="Who sent this?"),
                SpokenLine(character="Tom", text="Nobody you know."),
                SpokenLine(character="Mara", text="Then why is my name on it?"),
            ]
        )

        result = await StubVoiceoverProvider().generate(request)

        assert result.audio_data.decode().splitlines() == [
            "[Mara] Who sent this?",
            "[Tom] Nobody you know.",
            "[Mara] Then why is my name on it?",
        ]
        assert result.voices == {"Mara": "stub-mara", "Tom": "stub-tom"}
        assert result.duration_seconds == pytest.approx(13 / 150 * 60)

    @pytest.mark.asyncio
    async def test_empty_request_rejected(self) -> None:
        with pytest.raises(ValueError, match="no lines"):
            await StubVoiceoverProvider().generate(VoiceoverRequest(lines=[]))

    def test_pick_voice_by_description(self) -> None:
        assert pick_voice("Deep, gravelly baritone") == "VR6AewLTigWG4xSOukaG"
        assert pick_voice("Soft and warm") == "EXAVITQu4vr4xnSDxMaL"
        assert pick_voice(None) == NARRATOR_VOICE

    @pytest.mark.asyncio
    async def test_elevenlabs_uses_each_speakers_voice(self) -> None:
        provider = ElevenLabsProvider("el-key", voice_overrides={"Tom": "tom-voice"})
        request = VoiceoverRequest(
            lines=[
                SpokenLine(character="Mara", text="Hello.", voice_description="young and bright"),
                SpokenLine(character="Tom", text="Hi."),
            ]
        )

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as mock_post:
            mock_post.side_effect = [ok(b"AAA"), ok(b"BBB")]
            result = await provider.generate(request)

        urls = [call.args[0] for call in mock_post.await_args_list]
        assert urls == [
            "https://api.elevenlabs.io/v1/text-to-speech/ErXwobaYiN019PkySvjV",
            "https://api.elevenlabs.io/v1/text-to-speech/tom-voice",
        ]
        assert mock_post.await_args_list[0].kwargs["headers"] == {"xi-api-key": "el-key"}
        assert result.audio_data == b"AAABBB"

    @pytest.mark.asyncio
    async def test_elevenlabs_rejection_keeps_provider_text(self) -> None:
        provider = ElevenLabsProvider("el-key")
        rejected = httpx.Response(
            400,
            text="text too long",
            request=httpx.Request("POST", "https://api.elevenlabs.io/v1/text-to-speech/x"),
        )

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock, return_value=rejected):
            with pytest.raises(ProviderError, match="text too long"):
                await provider.generate(VoiceoverRequest(lines=[SpokenLine("Mara", "...")]))


class TestImageGen:
    def test_size_for_aspect_ratio(self) -> None:
        assert size_for("16:9") == "1792x1024"
        assert size_for("9:16") == "1024x1792"
        assert size_for("4:3") == "1792x1024"
        assert size_for("2:3") == "1024x1792"
        assert size_for("5:5") == "1024x1024"
        assert size_for("cinema") == "1792x1024"

    def test_payload_style_follows_purpose(self) -> None:
        provider = OpenAIDalleProvider("sk-test")

        portrait = provider.build_payload(ImageGenRequest(prompt="A keeper", aspect_ratio="1:1"))
        poster = provider.build_payload(
            ImageGenRequest(prompt="The Keeper", purpose=ImagePurpose.POSTER, style="noir")
        )

        assert portrait["style"] == "natural"
        assert portrait["size"] == "1024x1024"
        assert poster["style"] == "vivid"
        assert poster["prompt"] == "noir, The Keeper"

    @pytest.mark.asyncio
    async def test_missing_url_raises(self) -> None:
        provider = OpenAIDalleProvider("sk-test")
        empty = httpx.Response(
            200, json={"data": []}, request=httpx.Request("POST", "https://api.openai.com/v1/images")
        )

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock, return_value=empty):
            with pytest.raises(ProviderError, match="No image URL"):
                await provider.generate(ImageGenRequest(prompt="A keeper"))

    @pytest.mark.asyncio
    async def test_stub_url_names_purpose(self) -> None:
        result = await StubImageGenProvider().generate(
            ImageGenRequest(prompt="x", purpose=ImagePurpose.POSTER)
        )

        assert result.image_url.startswith("https://simulated.invalid/images/poster-")
