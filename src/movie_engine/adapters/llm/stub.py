"""Stub LLM provider for simulation mode."""

import json
from typing import Any

from movie_engine.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from movie_engine.logging import get_logger

logger = get_logger(__name__)


class StubLLMProvider(LLMProvider):
    """Returns canned location, screenplay and casting JSON.

    The response shape is picked from the role named in the system prompt.
    """

    def __init__(self, scene_count: int = 3) -> None:
        self.scene_count = scene_count

    @property
    def name(self) -> str:
        return "stub"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float = 0.7,  # noqa: ARG002
        max_tokens: int = 4096,  # noqa: ARG002
        json_mode: bool = False,
    ) -> LLMResponse:
        system = next((m.content for m in messages if m.role == "system"), "").lower()
        user = next((m.content for m in reversed(messages) if m.role == "user"), "")

        logger.info("stub_llm_complete", message_count=len(messages), json_mode=json_mode)

        if "location scout" in system:
            payload = self._locations()
        elif "casting director" in system:
            payload = self._casting()
        else:
            payload = self._screenplay(user)

        return LLMResponse(
            content=json.dumps(payload),
            model="stub",
            usage={"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
            finish_reason="stop",
        )

    def _locations(self) -> dict[str, Any]:
        return {
            "locations": [
                {
                    "name": "Harbor at dawn",
                    "description": "Fog over wet wooden piers, gulls circling",
                    "visual_style": "muted blues, soft backlight",
                },
                {
                    "name": "Lighthouse interior",
                    "description": "Spiral iron staircase, brass lamp room",
                    "visual_style": "warm tungsten, long shadows",
                },
            ]
        }

    def _screenplay(self, prompt: str) -> dict[str, Any]:
        locations = ["Harbor at dawn", "Lighthouse interior"]
        scenes = []
        for i in range(self.scene_count):
            scene: dict[str, Any] = {
                "scene_number": i + 1,
                "location": locations[i % len(locations)],
                "visual_prompt": f"Scene {i + 1}: {prompt[:80]}",
                "duration_seconds": 5,
                "characters": ["Mara"],
                "dialogue": [],
            }
            if i % 2 == 0:
                scene["dialogue"] = [{"character": "Mara", "line": f"Line {i + 1}."}]
            scenes.append(scene)
        return {
            "title": "The Keeper",
            "logline": f"A short film about {prompt[:60]}",
            "characters": ["Mara"],
            "scenes": scenes,
        }

    def _casting(self) -> dict[str, Any]:
        return {
            "characters": [
                {
                    "name": "Mara",
                    "description": "Weathered lighthouse keeper in her sixties, grey braid, oilskin coat",
                    "voice": "calm, low, slightly hoarse",
                }
            ]
        }
