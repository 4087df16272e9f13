"""Tests for the Screenwriter service."""

import json
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from movie_engine.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from movie_engine.adapters.llm.openai import OpenAIProvider
from movie_engine.adapters.llm.stub import StubLLMProvider
from movie_engine.errors import ProviderError
from movie_engine.services.screenwriter import Location, SceneDraft, Screenplay, Screenwriter


class CannedLLM(LLMProvider):
    """Returns a fixed response and records what it was asked."""

    def __init__(self, content: str | dict[str, Any]) -> None:
        self.content = content if isinstance(content, str) else json.dumps(content)
        self.calls: list[list[LLMMessage]] = []

    @property
    def name(self) -> str:
        return "canned"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,  # noqa: ARG002
        max_tokens: int = 4096,  # noqa: ARG002
        json_mode: bool = False,  # noqa: ARG002
    ) -> LLMResponse:
        self.calls.append(messages)
        return LLMResponse(content=self.content, model="canned")


@pytest.fixture
def screenwriter() -> Screenwriter:
    """Get a Screenwriter backed by the stub LLM."""
    return Screenwriter(StubLLMProvider())


class TestScreenplay:
    def test_scene_code_and_total_duration(self) -> None:
        screenplay = Screenplay(
            title="Test",
            logline="",
            scenes=[
                SceneDraft(scene_number=1, visual_prompt="a", duration_seconds=4),
                SceneDraft(scene_number=12, visual_prompt="b", duration_seconds=6.5),
            ],
        )

        assert screenplay.scenes[1].scene_code == "SC012"
        assert screenplay.total_duration == 10.5


class TestScreenwriterWithStub:
    @pytest.mark.asyncio
    async def test_research_locations(self, screenwriter: Screenwriter) -> None:
        locations = await screenwriter.research_locations("A storm over a lighthouse", "thriller")

        assert [loc.name for loc in locations] == ["Harbor at dawn", "Lighthouse interior"]

    @pytest.mark.asyncio
    async def test_write_screenplay(self, screenwriter: Screenwriter) -> None:
        screenplay = await screenwriter.write_screenplay(
            "A storm over a lighthouse",
            [Location(name="Harbor at dawn", description="Fog")],
        )

        assert screenplay.title == "The Keeper"
        assert [s.scene_number for s in screenplay.scenes] == [1, 2, 3]
        assert screenplay.scenes[0].dialogue == [{"character": "Mara", "line": "Line 1."}]
        assert screenplay.scenes[1].dialogue == []

    @pytest.mark.asyncio
    async def test_cast_characters(self, screenwriter: Screenwriter) -> None:
        screenplay = await screenwriter.write_screenplay("A storm over a lighthouse", [])

        cast = await screenwriter.cast_characters(screenplay)

        assert [c.name for c in cast] == ["Mara"]
        assert cast[0].voice


class TestScreenwriterParsing:
    @pytest.mark.asyncio
    async def test_scenes_are_renumbered_and_dialogue_filtered(self) -> None:
        llm = CannedLLM(
            {
                "title": "Out of Order",
                "scenes": [
                    {"scene_number": 7, "visual_prompt": "Wide shot of a pier", "duration_seconds": 6},
                    {
                        "scene_number": 3,
                        "visual_prompt": "Close-up of a bottle",
                        "dialogue": [
                            {"character": "Mara", "line": "What is this?"},
                            {"character": "Mara"},
                            "not a line",
                        ],
                    },
                ],
            }
        )

        screenplay = await Screenwriter(llm).write_screenplay("idea", [], genre="mystery")

        assert [s.scene_number for s in screenplay.scenes] == [1, 2]
        assert screenplay.scenes[1].duration_seconds == 5.0
        assert screenplay.scenes[1].dialogue == [{"character": "Mara", "line": "What is this?"}]
        assert screenplay.logline == ""
        assert "Genre: mystery" in llm.calls[0][1].content

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self) -> None:
        with pytest.raises(ValueError, match="invalid JSON"):
            await Screenwriter(CannedLLM("Sure! Here is your screenplay:")).write_screenplay("idea", [])

    @pytest.mark.asyncio
    async def test_missing_scenes_raises(self) -> None:
        with pytest.raises(ValueError, match="missing scenes"):
            await Screenwriter(CannedLLM({"title": "Empty"})).write_screenplay("idea", [])

    @pytest.mark.asyncio
    async def test_non_object_scenes_are_dropped(self) -> None:
        llm = CannedLLM({"scenes": ["INT. PIER - NIGHT", {"visual_prompt": "Wide shot of a pier"}]})

        screenplay = await Screenwriter(llm).write_screenplay("idea", [])

        assert [s.visual_prompt for s in screenplay.scenes] == ["Wide shot of a pier"]
        assert screenplay.scenes[0].scene_number == 1

    @pytest.mark.asyncio
    async def test_only_non_object_scenes_raises(self) -> None:
        with pytest.raises(ValueError, match="missing scenes"):
            await Screenwriter(CannedLLM({"scenes": ["INT. PIER - NIGHT"]})).write_screenplay("idea", [])

    @pytest.mark.asyncio
    async def test_scene_without_prompt_raises(self) -> None:
        llm = CannedLLM({"scenes": [{"scene_number": 1}]})
        with pytest.raises(ValueError, match="Scene 1 has no visual prompt"):
            await Screenwriter(llm).write_screenplay("idea", [])

    @pytest.mark.asyncio
    async def test_no_characters_skips_casting(self) -> None:
        llm = CannedLLM({})
        screenplay = Screenplay(
            title="Empty stage",
            logline="",
            scenes=[SceneDraft(scene_number=1, visual_prompt="An empty room")],
        )

        assert await Screenwriter(llm).cast_characters(screenplay) == []
        assert llm.calls == []


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_json_mode_request_and_response(self) -> None:
        provider = OpenAIProvider("sk-test", base_url="https://gateway.test/v1/")
        body = {
            "model": "gpt-4o-2024-08-06",
            "choices": [{"message": {"content": '{"title": "T"}'}, "finish_reason": "length"}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }
        response = httpx.Response(
            200, json=body, request=httpx.Request("POST", "https://gateway.test/v1/chat/completions")
        )

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock, return_value=response) as mock_post:
            result = await provider.complete([LLMMessage.user("Write")], json_mode=True)

        assert mock_post.await_args.args[0] == "https://gateway.test/v1/chat/completions"
        payload = mock_post.await_args.kwargs["json"]
        assert payload["response_format"] == {"type": "json_object"}
        assert payload["messages"] == [{"role": "user", "content": "Write"}]
        assert result.content == '{"title": "T"}'
        assert result.total_tokens == 15
        assert result.truncated is True

    @pytest.mark.asyncio
    async def test_no_choices_is_provider_error(self) -> None:
        provider = OpenAIProvider("sk-test")
        response = httpx.Response(
            200, json={"choices": []}, request=httpx.Request("POST", "https://api.openai.com/v1")
        )

        with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock, return_value=response):
            with pytest.raises(ProviderError, match="no choices"):
                await provider.complete([LLMMessage.user("Write")])
