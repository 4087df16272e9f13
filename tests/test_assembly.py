"""Tests for final assembly and the Creatomate composition."""

import io
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx
import pytest
from PIL import Image

from movie_engine.adapters.base import JobState, JobStatus
from movie_engine.adapters.image_gen.stub import StubImageGenProvider
from movie_engine.adapters.renderer.base import RenderClip, RendererProvider, RenderRequest
from movie_engine.adapters.renderer.creatomate import CreatomateRenderer
from movie_engine.adapters.renderer.stub import StubRendererProvider
from movie_engine.db.models import MovieSceneModel
from movie_engine.errors import ProviderError
from movie_engine.services.assembly import MovieAssembler, build_clips, make_thumbnail
from movie_engine.services.storage import StorageService


def scene(number: int, **fields: Any) -> MovieSceneModel:
    values: dict[str, Any] = {
        "scene_number": number,
        "visual_prompt": f"Scene {number}",
        "duration_seconds": 5.0,
        "video_url": f"https://cdn/scene-{number}.mp4",
    }
    values.update(fields)
    return MovieSceneModel(**values)


class FailingRenderer(RendererProvider):
    @property
    def name(self) -> str:
        return "failing"

    async def submit(self, request: RenderRequest) -> str:
        return "render-1"

    async def fetch_status(self, job_id: str) -> JobStatus:
        return JobStatus(JobState.FAILED, error="Source video could not be downloaded")


class TestBuildClips:
    def test_orders_by_scene_and_prefers_lip_sync(self) -> None:
        scenes = [
            scene(2, audio_url="https://cdn/a2.mp3"),
            scene(
                1,
                audio_url="https://cdn/a1.mp3",
                lip_sync_video_url="https://cdn/ls-1.mp4",
            ),
        ]

        clips = build_clips(scenes)

        assert [c.scene_number for c in clips] == [1, 2]
        assert clips[0].video_url == "https://cdn/ls-1.mp4"
        assert clips[0].audio_url is None
        assert clips[1].video_url == "https://cdn/scene-2.mp4"
        assert clips[1].audio_url == "https://cdn/a2.mp3"

    def test_scene_without_video_raises(self) -> None:
        with pytest.raises(ValueError, match="Scene 2 has no video"):
            build_clips([scene(1), scene(2, video_url=None)])


class TestMovieAssembler:
    @pytest.mark.asyncio
    async def test_renders_each_quality_tier_in_order(self, sleep: Any) -> None:
        assembler = MovieAssembler(
            StubRendererProvider(), StorageService(simulated=True), sleep=sleep
        )

        result = await assembler.assemble(
            uuid4(), build_clips([scene(1), scene(2)]), ["720p", "1080p"]
        )

        assert list(result.video_urls) == ["720p", "1080p"]
        assert result.video_urls["720p"].endswith("_720p.mp4")
        assert result.primary_url == result.video_urls["720p"]

    @pytest.mark.asyncio
    async def test_render_failure_raises_provider_text(self, sleep: Any) -> None:
        assembler = MovieAssembler(FailingRenderer(), StorageService(simulated=True), sleep=sleep)

        with pytest.raises(ProviderError, match="could not be downloaded"):
            await assembler.assemble(uuid4(), build_clips([scene(1)]), ["1080p"])

    @pytest.mark.asyncio
    async def test_simulated_cover_keeps_image_reference(self, sleep: Any) -> None:
        assembler = MovieAssembler(
            StubRendererProvider(), StorageService(simulated=True), sleep=sleep
        )

        cover = await assembler.create_cover(
            uuid4(), StubImageGenProvider(), "The Keeper", "A keeper and a bottle"
        )

        assert cover.poster_url.startswith("https://simulated.invalid/images/")
        assert cover.thumbnail_url == cover.poster_url

    @pytest.mark.asyncio
    async def test_local_cover_writes_poster_and_thumbnail(self, tmp_path: Path, sleep: Any) -> None:
        buffer = io.BytesIO()
        Image.new("RGB", (1024, 1536), "navy").save(buffer, format="PNG")
        storage = StorageService(base_path=tmp_path, public_base_url="https://media.test")
        assembler = MovieAssembler(StubRendererProvider(), storage, sleep=sleep)
        movie_id = uuid4()
        image_response = httpx.Response(
            200,
            content=buffer.getvalue(),
            request=httpx.Request("GET", "https://simulated.invalid/images/x.png"),
        )

        with patch.object(httpx.AsyncClient, "get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = image_response
            cover = await assembler.create_cover(movie_id, StubImageGenProvider(), "T", "L")

        assert cover.poster_url.startswith(f"https://media.test/covers/{movie_id}/")
        assert cover.thumbnail_url.endswith(".jpg")
        thumbs = list((tmp_path / "covers" / str(movie_id)).glob("*.jpg"))
        assert len(thumbs) == 1
        with Image.open(thumbs[0]) as thumb:
            assert max(thumb.size) == 480


class TestMakeThumbnail:
    def test_downscales_and_converts_to_jpeg(self) -> None:
        buffer = io.BytesIO()
        Image.new("RGBA", (1920, 1080), (200, 10, 10, 255)).save(buffer, format="PNG")

        thumb_bytes = make_thumbnail(buffer.getvalue())

        with Image.open(io.BytesIO(thumb_bytes)) as thumb:
            assert thumb.format == "JPEG"
            assert thumb.size == (480, 270)


class TestCreatomateComposition:
    def test_clips_back_to_back_with_tracks(self) -> None:
        renderer = CreatomateRenderer(api_key="test-key")
        request = RenderRequest(
            clips=[
                RenderClip(scene_number=2, video_url="https://cdn/2.mp4", duration_seconds=4),
                RenderClip(
                    scene_number=1,
                    video_url="https://cdn/1.mp4",
                    duration_seconds=6,
                    audio_url="https://cdn/1.mp3",
                ),
            ],
            quality="720p",
            aspect_ratio="9:16",
            music_url="https://cdn/music.mp3",
        )

        payload = renderer.build_composition(request)
        source = payload["source"]
        videos = [e for e in source["elements"] if e["type"] == "video"]
        audio = [e for e in source["elements"] if e["type"] == "audio"]

        assert (source["width"], source["height"]) == (720, 1280)
        assert source["duration"] == 10
        assert [(v["source"], v["time"]) for v in videos] == [
            ("https://cdn/1.mp4", 0.0),
            ("https://cdn/2.mp4", 6.0),
        ]
        assert audio[0]["source"] == "https://cdn/1.mp3"
        assert audio[1]["track"] == 3
        assert audio[1]["volume"] == "30%"
        assert payload["metadata"] == "720p"

    def test_parse_status(self) -> None:
        renderer = CreatomateRenderer(api_key="test-key")

        done = renderer.parse_status({"status": "succeeded", "url": "https://cdn/out.mp4"})
        failed = renderer.parse_status({"status": "failed", "error_message": "Invalid source"})
        planned = renderer.parse_status({"status": "planned"})

        assert done.asset_url == "https://cdn/out.mp4"
        assert failed.error == "Invalid source"
        assert planned.state is JobState.RUNNING


class TestStorageService:
    @pytest.mark.asyncio
    async def test_store_bytes_locally(self, tmp_path: Path) -> None:
        storage = StorageService(base_path=tmp_path)
        movie_id = uuid4()

        asset = await storage.store_bytes(b"audio", "scene_audio", movie_id, mime_type="audio/mpeg")

        assert asset.storage_type == "local"
        assert asset.file_path is not None
        assert asset.file_path.parent == tmp_path / "audio" / str(movie_id)
        assert asset.url.startswith("file://")
        assert asset.file_size_bytes == 5

    @pytest.mark.asyncio
    async def test_simulated_store_from_url_keeps_reference(self) -> None:
        storage = StorageService(simulated=True)
        client = MagicMock()

        with patch.object(httpx, "AsyncClient", client):
            asset = await storage.store_from_url("https://cdn/x.mp4", "final_video", uuid4())

        assert asset.url == "https://cdn/x.mp4"
        assert asset.storage_type == "reference"
        client.assert_not_called()
