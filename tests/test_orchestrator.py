"""Tests for the pipeline orchestrator, run end to end against stub providers."""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest

from movie_engine.adapters.base import JobState, JobStatus
from movie_engine.adapters.music.base import MusicProvider, MusicRequest
from movie_engine.adapters.renderer.stub import StubRendererProvider
from movie_engine.adapters.video_gen.stub import StubVideoGenProvider
from movie_engine.config import settings
from movie_engine.db.models import MovieModel, MovieSceneModel
from movie_engine.domain.enums import Capability, MovieStatus, PipelineStage, StageStatus
from movie_engine.errors import PipelineStageError, RunNotFoundError, RunNotQueuedError
from movie_engine.services.orchestrator import PipelineOrchestrator, required_capabilities
from movie_engine.services.progress import ProgressLedger
from movie_engine.services.providers import (
    ProviderBinding,
    ProviderEndpoint,
    ProviderRegistry,
    ProviderSet,
)


class NeverFinishingMusic(MusicProvider):
    """Accepts the job and reports it running forever."""

    @property
    def name(self) -> str:
        return "never"

    async def submit(self, request: MusicRequest) -> str:
        return "music-job-1"

    async def fetch_status(self, job_id: str) -> JobStatus:
        return JobStatus(JobState.RUNNING)


def simulated_registry(*capabilities: Capability) -> ProviderRegistry:
    caps = capabilities or tuple(Capability)
    return ProviderRegistry(
        {
            cap: ProviderBinding(
                capability=cap,
                primary=ProviderEndpoint(provider_id="stub"),
                simulation_mode=True,
            )
            for cap in caps
        }
    )


@pytest.fixture
def build(session_factory: Any, sleep: Any) -> Callable[..., PipelineOrchestrator]:
    def _build(
        movie_id: UUID,
        registry: ProviderRegistry | None = None,
        overrides: dict[Capability, Any] | None = None,
        send_alerts: bool = False,
    ) -> PipelineOrchestrator:
        registry = registry or simulated_registry()
        return PipelineOrchestrator(
            movie_id,
            session_factory=session_factory,
            registry=registry,
            providers=ProviderSet(registry, overrides=overrides, renderer=StubRendererProvider()),
            sleep=sleep,
            send_alerts=send_alerts,
        )

    return _build


def load_movie(session_factory: Any, movie_id: UUID) -> tuple[MovieModel, list[MovieSceneModel]]:
    with session_factory() as session:
        movie = session.get(MovieModel, movie_id)
        scenes = sorted(movie.scenes, key=lambda s: s.scene_number)
    return movie, scenes


class TestRequiredCapabilities:
    def test_defaults(self) -> None:
        assert required_capabilities({}) == [Capability.SCRIPT, Capability.VIDEO, Capability.STORAGE]

    def test_explicit_requests_become_required(self) -> None:
        required = required_capabilities({"include_music": True, "include_lip_sync": True})
        assert Capability.MUSIC in required
        assert Capability.LIP_SYNC in required

    def test_false_does_not_require(self) -> None:
        assert Capability.MUSIC not in required_capabilities({"include_music": False})


class TestSuccessfulRun:
    @pytest.mark.asyncio
    async def test_full_simulated_run(
        self, build: Any, make_movie: Any, session_factory: Any
    ) -> None:
        movie_id = make_movie(genre="drama", options={"quality_tiers": ["1080p", "720p"]})

        await build(movie_id).execute()

        movie, scenes = load_movie(session_factory, movie_id)
        assert movie.status == MovieStatus.COMPLETED.value
        assert movie.progress == 100
        assert movie.error_message is None
        assert movie.completed_at is not None
        assert movie.title == "The Keeper"
        assert list(movie.video_urls) == ["1080p", "720p"]
        assert movie.video_url == movie.video_urls["1080p"]
        assert movie.poster_url and movie.thumbnail_url
        assert movie.metadata_["music_url"].startswith("https://simulated.invalid/music/")
        assert [loc["name"] for loc in movie.metadata_["locations"]] == [
            "Harbor at dawn",
            "Lighthouse interior",
        ]

        assert [s.scene_number for s in scenes] == [1, 2, 3]
        assert all(s.status == "completed" for s in scenes)
        assert all(s.provider_job_id and s.video_url for s in scenes)
        assert all(s.reference_image_url for s in scenes)
        # Scenes 1 and 3 carry dialogue
        assert [bool(s.audio_url) for s in scenes] == [True, False, True]
        assert [bool(s.lip_sync_video_url) for s in scenes] == [True, False, True]

    @pytest.mark.asyncio
    async def test_ledger_after_success(
        self, build: Any, make_movie: Any, session_factory: Any
    ) -> None:
        movie_id = make_movie()

        await build(movie_id).execute()

        view = ProgressLedger(session_factory).read(movie_id)
        assert view.overall_status is MovieStatus.COMPLETED
        assert view.overall_progress == 100
        assert view.current_stage == PipelineStage.FINALIZE.value
        assert view.errors == []
        assert view.reconstructed is False
        assert all(rec.status is StageStatus.COMPLETED for rec in view.stages.values())
        assert list(view.stages) == [s.value for s in PipelineStage]
        assert view.stats.total_scenes == 3
        assert view.stats.scenes_completed == 3
        assert view.stages["finalize"].detail == "2 quality tiers published"

    @pytest.mark.asyncio
    async def test_optional_stages_skip_when_not_requested_or_unconfigured(
        self, build: Any, make_movie: Any, session_factory: Any
    ) -> None:
        movie_id = make_movie(options={"include_lip_sync": False})
        registry = simulated_registry(Capability.SCRIPT, Capability.VIDEO, Capability.STORAGE)

        await build(movie_id, registry=registry).execute()

        view = ProgressLedger(session_factory).read(movie_id)
        assert view.overall_status is MovieStatus.COMPLETED
        assert view.stages["generate_audio"].detail == "Skipped: no voice provider configured"
        assert view.stages["apply_lip_sync"].detail == "Skipped: not requested"
        assert view.stages["generate_music"].detail == "Skipped: no music provider configured"
        assert view.stages["generate_cover"].detail == "Skipped: no image provider configured"

        movie, scenes = load_movie(session_factory, movie_id)
        assert movie.poster_url is None
        assert all(s.audio_url is None for s in scenes)


class TestFailures:
    @pytest.mark.asyncio
    async def test_scene_failure_halts_pipeline(
        self, build: Any, make_movie: Any, session_factory: Any
    ) -> None:
        movie_id = make_movie()
        video = StubVideoGenProvider(fail_prompts=("Scene 2:",))

        with pytest.raises(PipelineStageError) as exc_info:
            await build(movie_id, overrides={Capability.VIDEO: video}).execute()

        assert exc_info.value.stage == "generate_videos"
        assert "Simulated generation failure" in exc_info.value.message

        movie, scenes = load_movie(session_factory, movie_id)
        assert movie.status == MovieStatus.FAILED.value
        assert "Simulated generation failure" in movie.error_message
        assert movie.video_url is None
        assert scenes[1].status == "failed"
        assert scenes[1].error_message == "Simulated generation failure"

        view = ProgressLedger(session_factory).read(movie_id)
        assert view.overall_status is MovieStatus.FAILED
        assert len(view.errors) == 1
        assert view.errors[0].stage == "generate_videos"
        assert view.errors[0].message == "Scene 2 failed: Simulated generation failure"
        assert view.errors[0].recoverable is False
        assert view.stages["generate_videos"].status is StageStatus.FAILED
        for later in ("generate_audio", "apply_lip_sync", "assemble_movie", "finalize"):
            assert view.stages[later].status is StageStatus.PENDING
        assert view.overall_progress < 100

    @pytest.mark.asyncio
    async def test_validation_failure_fails_queued_run(
        self, build: Any, make_movie: Any, session_factory: Any
    ) -> None:
        movie_id = make_movie()

        with pytest.raises(PipelineStageError) as exc_info:
            await build(movie_id, registry=simulated_registry(Capability.SCRIPT)).execute()

        assert exc_info.value.stage == "validate_providers"
        movie, scenes = load_movie(session_factory, movie_id)
        assert movie.status == MovieStatus.FAILED.value
        assert movie.error_message == "Missing provider capabilities: video, storage"
        assert scenes == []

        view = ProgressLedger(session_factory).read(movie_id)
        assert [e.stage for e in view.errors] == ["validate_providers"]
        assert view.stages["validate_providers"].status is StageStatus.FAILED
        assert view.stages["research_locations"].status is StageStatus.PENDING

    @pytest.mark.asyncio
    async def test_requested_music_without_provider_fails_validation(
        self, build: Any, make_movie: Any, session_factory: Any
    ) -> None:
        movie_id = make_movie(options={"include_music": True})
        registry = simulated_registry(Capability.SCRIPT, Capability.VIDEO, Capability.STORAGE)

        with pytest.raises(PipelineStageError, match="music"):
            await build(movie_id, registry=registry).execute()

        movie, _ = load_movie(session_factory, movie_id)
        assert movie.error_message == "Missing provider capabilities: music"

    @pytest.mark.asyncio
    async def test_missing_storage_fails_before_any_stage_runs(
        self, build: Any, make_movie: Any, session_factory: Any
    ) -> None:
        movie_id = make_movie()
        registry = simulated_registry(Capability.SCRIPT, Capability.VIDEO)

        with pytest.raises(PipelineStageError) as exc_info:
            await build(movie_id, registry=registry).execute()

        assert exc_info.value.stage == "validate_providers"
        movie, scenes = load_movie(session_factory, movie_id)
        assert movie.error_message == "Missing provider capabilities: storage"
        assert scenes == []
        view = ProgressLedger(session_factory).read(movie_id)
        assert view.stages["generate_videos"].status is StageStatus.PENDING

    @pytest.mark.asyncio
    async def test_unusable_renderer_fails_validation(
        self,
        make_movie: Any,
        session_factory: Any,
        sleep: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(settings, "renderer_provider", "creatomate")
        monkeypatch.setattr(settings, "creatomate_api_key", None)
        movie_id = make_movie()
        registry = simulated_registry()
        orchestrator = PipelineOrchestrator(
            movie_id,
            session_factory=session_factory,
            registry=registry,
            providers=ProviderSet(registry),
            sleep=sleep,
            send_alerts=False,
        )

        with pytest.raises(PipelineStageError, match="CREATOMATE_API_KEY") as exc_info:
            await orchestrator.execute()

        assert exc_info.value.stage == "validate_providers"
        movie, scenes = load_movie(session_factory, movie_id)
        assert movie.status == MovieStatus.FAILED.value
        assert scenes == []

    @pytest.mark.asyncio
    async def test_ledger_write_failure_still_fails_run(
        self, make_movie: Any, session_factory: Any, sleep: Any
    ) -> None:
        class FlakyLedger(ProgressLedger):
            def complete_stage(
                self, movie_id: UUID, stage: PipelineStage, detail: str | None = None
            ) -> None:
                if stage is PipelineStage.RESEARCH_LOCATIONS:
                    raise RuntimeError("ledger write failed")
                super().complete_stage(movie_id, stage, detail)

        movie_id = make_movie()
        registry = simulated_registry()
        orchestrator = PipelineOrchestrator(
            movie_id,
            session_factory=session_factory,
            registry=registry,
            providers=ProviderSet(registry, renderer=StubRendererProvider()),
            ledger=FlakyLedger(session_factory),
            sleep=sleep,
            send_alerts=False,
        )

        with pytest.raises(PipelineStageError) as exc_info:
            await orchestrator.execute()

        assert exc_info.value.stage == "research_locations"
        movie, _ = load_movie(session_factory, movie_id)
        assert movie.status == MovieStatus.FAILED.value
        assert movie.error_message == "ledger write failed"
        view = ProgressLedger(session_factory).read(movie_id)
        assert view.overall_status is MovieStatus.FAILED
        assert view.stages["research_locations"].status is StageStatus.FAILED
        assert all(rec.status is not StageStatus.RUNNING for rec in view.stages.values())

    @pytest.mark.asyncio
    async def test_pending_job_is_recorded_as_recoverable(
        self,
        build: Any,
        make_movie: Any,
        session_factory: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(settings, "scene_max_poll_rounds", 2)
        monkeypatch.setattr(settings, "poll_max_attempts", 3)
        movie_id = make_movie()

        with pytest.raises(PipelineStageError) as exc_info:
            await build(movie_id, overrides={Capability.MUSIC: NeverFinishingMusic()}).execute()

        assert exc_info.value.stage == "generate_music"
        assert "music-job-1" in exc_info.value.message
        view = ProgressLedger(session_factory).read(movie_id)
        assert view.errors[0].recoverable is True
        assert view.stages["apply_lip_sync"].status is StageStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failure_sends_alert(self, build: Any, make_movie: Any) -> None:
        movie_id = make_movie()
        video = StubVideoGenProvider(fail_prompts=("Scene 1:",))

        with patch(
            "movie_engine.services.orchestrator.alert_pipeline_failure",
            new_callable=AsyncMock,
        ) as mock_alert:
            with pytest.raises(PipelineStageError):
                await build(
                    movie_id, overrides={Capability.VIDEO: video}, send_alerts=True
                ).execute()

        mock_alert.assert_awaited_once_with(
            movie_id,
            "generate_videos",
            "Scene 1 failed: Simulated generation failure",
            recoverable=False,
        )


class TestRunPreconditions:
    @pytest.mark.asyncio
    async def test_non_queued_run_is_rejected(
        self, build: Any, make_movie: Any, session_factory: Any
    ) -> None:
        movie_id = make_movie(status="processing", progress=40)

        with pytest.raises(RunNotQueuedError):
            await build(movie_id).execute()

        movie, _ = load_movie(session_factory, movie_id)
        assert movie.status == "processing"
        assert movie.progress == 40

    @pytest.mark.asyncio
    async def test_unknown_movie(self, build: Any) -> None:
        with pytest.raises(RunNotFoundError):
            await build(uuid4()).execute()

    @pytest.mark.asyncio
    async def test_completed_run_cannot_restart(
        self, build: Any, make_movie: Any
    ) -> None:
        movie_id = make_movie()
        await build(movie_id).execute()

        with pytest.raises(RunNotQueuedError):
            await build(movie_id).execute()
