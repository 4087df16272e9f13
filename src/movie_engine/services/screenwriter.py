"""Script development with an LLM: locations, screenplay and casting."""

import json
from dataclasses import dataclass, field
from typing import Any

from movie_engine.adapters.llm.base import LLMMessage, LLMProvider
from movie_engine.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Location:
    name: str
    description: str
    visual_style: str = ""


@dataclass
class SceneDraft:
    """One scene as written, before any media exists."""

    scene_number: int
    visual_prompt: str
    duration_seconds: float = 5.0
    location: str | None = None
    characters: list[str] = field(default_factory=list)
    dialogue: list[dict[str, str]] = field(default_factory=list)

    @property
    def scene_code(self) -> str:
        return f"SC{self.scene_number:03d}"


@dataclass
class Screenplay:
    title: str
    logline: str
    scenes: list[SceneDraft]
    characters: list[str] = field(default_factory=list)

    @property
    def total_duration(self) -> float:
        return sum(s.duration_seconds for s in self.scenes)


@dataclass
class CharacterProfile:
    name: str
    description: str
    voice: str = ""
    portrait_url: str | None = None


class Screenwriter:
    """Turns a user's prompt into locations, a screenplay and a cast.

    Each step is one JSON-mode completion. Responses that are not valid JSON
    or miss required fields raise ``ValueError``.
    """

    LOCATIONS_PROMPT = """You are a film location scout.
Given a movie idea, propose the distinct locations the story needs.

Output a JSON object:
{
  "locations": [
    {"name": "short name", "description": "what it looks like", "visual_style": "lighting, palette, lens"}
  ]
}
Propose between 2 and 6 locations."""

    SCREENPLAY_PROMPT = """You are a screenwriter for short AI-generated films.
Each scene is rendered independently by a video model from its visual prompt,
so every visual prompt must fully describe the shot on its own: subject,
action, setting, lighting and camera.

Output a JSON object:
{
  "title": "movie title",
  "logline": "one sentence",
  "characters": ["character name"],
  "scenes": [
    {
      "scene_number": 1,
      "location": "one of the given locations",
      "visual_prompt": "self-contained shot description",
      "duration_seconds": 5,
      "characters": ["names on screen"],
      "dialogue": [{"character": "name", "line": "spoken line"}]
    }
  ]
}
Scene durations are between 4 and 10 seconds. Dialogue may be empty."""

    CASTING_PROMPT = """You are a casting director for an animated film.
For each character, write a consistent visual description usable as an
image-generation prompt, and a short description of their voice.

Output a JSON object:
{
  "characters": [
    {"name": "name", "description": "appearance, age, clothing", "voice": "tone, pitch, accent"}
  ]
}"""

    def __init__(self, llm: LLMProvider) -> None:
        self.llm = llm

    async def _complete_json(self, system: str, user: str, temperature: float = 0.7) -> dict[str, Any]:
        response = await self.llm.complete(
            [LLMMessage.system(system), LLMMessage.user(user)],
            temperature=temperature,
            json_mode=True,
        )
        if response.truncated:
            logger.warning("screenwriter_response_truncated", model=response.model)
        try:
            data = json.loads(response.content)
        except json.JSONDecodeError as e:
            logger.error("screenwriter_invalid_json", error=str(e), content=response.content[:500])
            raise ValueError(f"LLM returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("LLM returned JSON that is not an object")
        return data

    async def research_locations(self, prompt: str, genre: str | None = None) -> list[Location]:
        user = f"Movie idea: {prompt}"
        if genre:
            user += f"\nGenre: {genre}"
        data = await self._complete_json(self.LOCATIONS_PROMPT, user)

        locations = [
            Location(
                name=str(item.get("name", f"Location {i + 1}")),
                description=str(item.get("description", "")),
                visual_style=str(item.get("visual_style", "")),
            )
            for i, item in enumerate(data.get("locations") or [])
            if isinstance(item, dict)
        ]
        logger.info("locations_researched", count=len(locations))
        return locations

    async def write_screenplay(
        self,
        prompt: str,
        locations: list[Location],
        genre: str | None = None,
        target_duration_seconds: int | None = None,
    ) -> Screenplay:
        lines = [f"Movie idea: {prompt}"]
        if genre:
            lines.append(f"Genre: {genre}")
        if target_duration_seconds:
            lines.append(f"Target total duration: about {target_duration_seconds} seconds")
        if locations:
            lines.append("Locations:")
            lines.extend(f"- {loc.name}: {loc.description} ({loc.visual_style})" for loc in locations)

        data = await self._complete_json(self.SCREENPLAY_PROMPT, "\n".join(lines))

        raw_scenes = data.get("scenes")
        if not isinstance(raw_scenes, list):
            raw_scenes = []
        raw_scenes = [raw for raw in raw_scenes if isinstance(raw, dict)]
        if not raw_scenes:
            raise ValueError("LLM response missing scenes")

        scenes = []
        for i, raw in enumerate(raw_scenes):
            visual_prompt = raw.get("visual_prompt")
            if not visual_prompt:
                raise ValueError(f"Scene {i + 1} has no visual prompt")
            scenes.append(
                SceneDraft(
                    # Renumber so ordinals are contiguous regardless of what the LLM sent
                    scene_number=i + 1,
                    visual_prompt=visual_prompt,
                    duration_seconds=float(raw.get("duration_seconds") or 5),
                    location=raw.get("location"),
                    characters=[str(c) for c in raw.get("characters") or []],
                    dialogue=[
                        {"character": str(d.get("character", "")), "line": str(d["line"])}
                        for d in raw.get("dialogue") or []
                        if isinstance(d, dict) and d.get("line")
                    ],
                )
            )

        screenplay = Screenplay(
            title=data.get("title") or "Untitled",
            logline=data.get("logline") or "",
            scenes=scenes,
            characters=[str(c) for c in data.get("characters") or []],
        )
        logger.info(
            "screenplay_written",
            title=screenplay.title,
            scene_count=len(scenes),
            total_duration=screenplay.total_duration,
        )
        return screenplay

    async def cast_characters(self, screenplay: Screenplay) -> list[CharacterProfile]:
        names = screenplay.characters or sorted(
            {name for scene in screenplay.scenes for name in scene.characters}
        )
        if not names:
            return []

        user = (
            f"Movie: {screenplay.title}\nLogline: {screenplay.logline}\n"
            f"Characters: {', '.join(names)}"
        )
        data = await self._complete_json(self.CASTING_PROMPT, user)

        profiles = [
            CharacterProfile(
                name=str(item.get("name", "")),
                description=str(item.get("description", "")),
                voice=str(item.get("voice", "")),
            )
            for item in data.get("characters") or []
            if isinstance(item, dict) and item.get("name")
        ]
        logger.info("characters_cast", count=len(profiles))
        return profiles
