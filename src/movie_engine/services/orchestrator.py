"""Pipeline orchestrator: runs one movie's stages in order.

The orchestrator only sequences stages, records progress and commits the
terminal state. Stages do their own bounded waiting (through the task
poller); none is retried here. The first exception out of a stage fails the
run and nothing after it executes. Assets produced by earlier stages are left
where they are.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID

from movie_engine.adapters.image_gen.base import ImageGenRequest
from movie_engine.adapters.lip_sync.base import LipSyncRequest
from movie_engine.adapters.music.base import MusicRequest
from movie_engine.adapters.voiceover.base import SpokenLine, VoiceoverRequest
from movie_engine.config import settings
from movie_engine.db.models import MovieModel, MovieSceneModel
from movie_engine.db.session import SessionFactory, get_session_context
from movie_engine.domain.enums import (
    STAGE_ORDER,
    Capability,
    MovieStatus,
    PipelineStage,
    SceneStatus,
)
from movie_engine.errors import (
    ConfigurationError,
    JobsPendingError,
    PipelineStageError,
    ProviderError,
    RunNotFoundError,
    RunNotQueuedError,
    SceneGenerationError,
    ScenesPendingError,
)
from movie_engine.logging import get_logger, run_log_context
from movie_engine.services.alerting import alert_pipeline_failure
from movie_engine.services.assembly import MovieAssembler, build_clips
from movie_engine.services.poller import PollStatus, SleepFunc, TaskPoller
from movie_engine.services.progress import ProgressLedger
from movie_engine.services.providers import (
    RUN_CAPABILITIES,
    ProviderRegistry,
    ProviderSet,
)
from movie_engine.services.scene_fanout import SceneFanout, SceneTask
from movie_engine.services.screenwriter import (
    CharacterProfile,
    Location,
    Screenplay,
    Screenwriter,
)

logger = get_logger(__name__)

# Detail shown while each stage runs
STAGE_DETAILS: dict[PipelineStage, str] = {
    PipelineStage.VALIDATE_PROVIDERS: "Checking provider configuration",
    PipelineStage.RESEARCH_LOCATIONS: "Scouting locations",
    PipelineStage.GENERATE_SCREENPLAY: "Writing screenplay",
    PipelineStage.ASSIGN_CHARACTERS: "Casting characters",
    PipelineStage.GENERATE_VIDEOS: "Generating scene videos",
    PipelineStage.GENERATE_AUDIO: "Recording dialogue",
    PipelineStage.APPLY_LIP_SYNC: "Syncing lips to dialogue",
    PipelineStage.GENERATE_MUSIC: "Composing soundtrack",
    PipelineStage.ASSEMBLE_MOVIE: "Assembling movie",
    PipelineStage.GENERATE_COVER: "Designing cover",
    PipelineStage.FINALIZE: "Publishing outputs",
}


def required_capabilities(options: dict[str, Any]) -> list[Capability]:
    """Capabilities a run cannot start without.

    Music and lip-sync become required only when the run explicitly asks
    for them; otherwise their stages are skipped when unconfigured.
    """
    required = list(RUN_CAPABILITIES)
    if options.get("include_music") is True:
        required.append(Capability.MUSIC)
    if options.get("include_lip_sync") is True:
        required.append(Capability.LIP_SYNC)
    return required


def error_message(exc: BaseException) -> str:
    """Human-readable message for the run's error log."""
    return str(exc) or type(exc).__name__


class PipelineOrchestrator:
    """Executes the generation pipeline for one movie.

    Args:
        movie_id: The run (movie) to execute. It must be ``queued``.
        session_factory: Context-managed session source; commits on exit.
        registry: Provider bindings. Loaded from the database when omitted.
        providers: Adapters for the run. Built from the registry when omitted.
        ledger: Progress ledger. Shares ``session_factory`` when omitted.
        sleep: Sleep used between provider status checks.
    """

    def __init__(
        self,
        movie_id: UUID,
        session_factory: SessionFactory = get_session_context,
        registry: ProviderRegistry | None = None,
        providers: ProviderSet | None = None,
        ledger: ProgressLedger | None = None,
        sleep: SleepFunc = asyncio.sleep,
        send_alerts: bool = True,
    ) -> None:
        self.movie_id = movie_id
        self.session_factory = session_factory
        self.registry = registry
        self.providers = providers
        self.ledger = ledger or ProgressLedger(session_factory)
        self.sleep = sleep
        self.send_alerts = send_alerts

        self.options: dict[str, Any] = {}
        self.prompt = ""
        self.genre: str | None = None
        self.target_duration: int | None = None
        self.locations: list[Location] = []
        self.screenplay: Screenplay | None = None
        self.cast: list[CharacterProfile] = []
        self.music_url: str | None = None

        self._handlers: dict[PipelineStage, Callable[[], Awaitable[str]]] = {
            PipelineStage.RESEARCH_LOCATIONS: self._research_locations,
            PipelineStage.GENERATE_SCREENPLAY: self._generate_screenplay,
            PipelineStage.ASSIGN_CHARACTERS: self._assign_characters,
            PipelineStage.GENERATE_VIDEOS: self._generate_videos,
            PipelineStage.GENERATE_AUDIO: self._generate_audio,
            PipelineStage.APPLY_LIP_SYNC: self._apply_lip_sync,
            PipelineStage.GENERATE_MUSIC: self._generate_music,
            PipelineStage.ASSEMBLE_MOVIE: self._assemble_movie,
            PipelineStage.GENERATE_COVER: self._generate_cover,
            PipelineStage.FINALIZE: self._finalize,
        }

    async def execute(self) -> None:
        """Run the pipeline to a terminal state.

        Raises:
            RunNotFoundError: If the movie does not exist.
            RunNotQueuedError: If the movie is not in the queued state.
            PipelineStageError: If a stage failed (the failure is already
                recorded on the run when this is raised).
        """
        with run_log_context(movie_id=str(self.movie_id)):
            await self._run()

    async def _run(self) -> None:
        self._load_run()

        validation = self.registry.validate(required_capabilities(self.options))
        if not validation.ok:
            await self._halt(PipelineStage.VALIDATE_PROVIDERS, validation.describe_missing())

        if self.providers is None:
            self.providers = ProviderSet(self.registry)
        try:
            self.providers.renderer()
        except ConfigurationError as e:
            await self._halt(PipelineStage.VALIDATE_PROVIDERS, error_message(e))

        stage = PipelineStage.VALIDATE_PROVIDERS
        try:
            self.ledger.init(
                self.movie_id,
                STAGE_ORDER,
                detail=STAGE_DETAILS[PipelineStage.VALIDATE_PROVIDERS],
            )
            self.ledger.complete_stage(
                self.movie_id,
                PipelineStage.VALIDATE_PROVIDERS,
                detail=f"{len(validation.configured)} capabilities configured",
            )
            for warning in validation.warnings:
                logger.info("provider_warning", warning=warning)

            for stage in STAGE_ORDER[1:]:
                self.ledger.begin_stage(self.movie_id, stage, STAGE_DETAILS[stage])
                detail = await self._handlers[stage]()
                self.ledger.complete_stage(self.movie_id, stage, detail)

            self.ledger.complete_run(self.movie_id, detail="Movie ready")
        except Exception as e:
            message = error_message(e)
            logger.error("stage_failed", stage=stage.value, error=message, error_type=type(e).__name__)
            await self._fail(stage, message, recoverable=isinstance(e, JobsPendingError))
            raise PipelineStageError(stage.value, message) from e

        logger.info("pipeline_completed")

    # ----------------------------------------------------------------- helpers

    def _load_run(self) -> None:
        with self.session_factory() as session:
            movie = session.get(MovieModel, self.movie_id)
            if movie is None:
                raise RunNotFoundError(f"Movie {self.movie_id} not found")
            if movie.status != MovieStatus.QUEUED.value:
                raise RunNotQueuedError(
                    f"Movie {self.movie_id} is {movie.status}; only queued runs can start"
                )
            self.options = dict(movie.options or {})
            self.prompt = movie.user_prompt
            self.genre = movie.genre
            self.target_duration = movie.target_duration_seconds
            if self.registry is None:
                self.registry = ProviderRegistry.from_session(session)

    async def _fail(self, stage: PipelineStage, message: str, recoverable: bool = False) -> None:
        self.ledger.fail_run(self.movie_id, stage, message, recoverable=recoverable)
        if self.send_alerts:
            await alert_pipeline_failure(self.movie_id, stage.value, message, recoverable=recoverable)

    async def _halt(self, stage: PipelineStage, message: str) -> None:
        """Fail the run at ``stage`` and stop."""
        await self._fail(stage, message)
        raise PipelineStageError(stage.value, message)

    def _update_movie(self, **fields: Any) -> None:
        with self.session_factory() as session:
            movie = session.get(MovieModel, self.movie_id)
            for key, value in fields.items():
                setattr(movie, key, value)

    def _merge_metadata(self, **values: Any) -> None:
        with self.session_factory() as session:
            movie = session.get(MovieModel, self.movie_id)
            metadata = dict(movie.metadata_ or {})
            metadata.update(values)
            movie.metadata_ = metadata

    def _update_scene(self, scene_id: UUID, **fields: Any) -> None:
        with self.session_factory() as session:
            scene = session.get(MovieSceneModel, scene_id)
            for key, value in fields.items():
                setattr(scene, key, value)

    def _scenes(self) -> list[MovieSceneModel]:
        with self.session_factory() as session:
            movie = session.get(MovieModel, self.movie_id)
            scenes = list(movie.scenes)
        return sorted(scenes, key=lambda s: s.scene_number)

    def _stage_progress(self, stage: PipelineStage, done: int, total: int, noun: str) -> None:
        self.ledger.update_stage_progress(
            self.movie_id,
            stage,
            100 * done / total if total else 100,
            detail=f"{done}/{total} {noun}",
        )

    @property
    def aspect_ratio(self) -> str:
        return self.options.get("aspect_ratio") or settings.default_aspect_ratio

    async def _await_job(self, provider: Any, request: Any, label: str) -> str:
        """Submit a job, wait for it and return the asset URL.

        Raises:
            ProviderError: If the job fails.
            JobsPendingError: If it is still running when the poll rounds run out.
        """
        poller = TaskPoller(provider, sleep=self.sleep)
        result = await poller.run(request, max_rounds=settings.scene_max_poll_rounds)
        if result.status is PollStatus.FAILED:
            raise ProviderError(result.error or f"{label} failed", provider=provider.name)
        if result.status is PollStatus.TIMED_OUT:
            raise JobsPendingError(f"{label} still pending after polling job {result.job_id}")
        return result.asset_url or ""

    # ------------------------------------------------------------------ stages

    async def _research_locations(self) -> str:
        writer = Screenwriter(self.providers.llm())
        self.locations = await writer.research_locations(self.prompt, self.genre)
        self._merge_metadata(
            locations=[
                {"name": loc.name, "description": loc.description, "visual_style": loc.visual_style}
                for loc in self.locations
            ]
        )
        return f"{len(self.locations)} locations found"

    async def _generate_screenplay(self) -> str:
        writer = Screenwriter(self.providers.llm())
        screenplay = await writer.write_screenplay(
            self.prompt,
            self.locations,
            genre=self.genre,
            target_duration_seconds=self.target_duration,
        )
        self.screenplay = screenplay

        with self.session_factory() as session:
            movie = session.get(MovieModel, self.movie_id)
            movie.scenes = [
                MovieSceneModel(
                    scene_number=draft.scene_number,
                    scene_code=draft.scene_code,
                    location=draft.location,
                    visual_prompt=draft.visual_prompt,
                    duration_seconds=draft.duration_seconds,
                    characters=draft.characters,
                    dialogue=draft.dialogue,
                    status=SceneStatus.PENDING.value,
                )
                for draft in screenplay.scenes
            ]
            if not movie.title:
                movie.title = screenplay.title
            metadata = dict(movie.metadata_ or {})
            metadata["screenplay"] = {"title": screenplay.title, "logline": screenplay.logline}
            movie.metadata_ = metadata

        self.ledger.update_stage_progress(
            self.movie_id,
            PipelineStage.GENERATE_SCREENPLAY,
            100,
            total_scenes=len(screenplay.scenes),
            scenes_completed=0,
        )
        return f"{len(screenplay.scenes)} scenes written"

    async def _assign_characters(self) -> str:
        writer = Screenwriter(self.providers.llm())
        self.cast = await writer.cast_characters(self.screenplay)

        image_provider = self.providers.image()
        portraits = 0
        if image_provider is not None:
            for i, profile in enumerate(self.cast, start=1):
                image = await image_provider.generate(
                    ImageGenRequest(
                        prompt=f"Character reference portrait: {profile.description}",
                        aspect_ratio=self.aspect_ratio,
                    )
                )
                profile.portrait_url = image.image_url
                portraits += 1
                self._stage_progress(PipelineStage.ASSIGN_CHARACTERS, i, len(self.cast), "portraits")

            portrait_by_name = {p.name: p.portrait_url for p in self.cast if p.portrait_url}
            for scene in self._scenes():
                reference = next(
                    (portrait_by_name[n] for n in scene.characters or [] if n in portrait_by_name),
                    None,
                )
                if reference:
                    self._update_scene(scene.id, reference_image_url=reference)

        self._merge_metadata(
            characters=[
                {
                    "name": p.name,
                    "description": p.description,
                    "voice": p.voice,
                    "portrait_url": p.portrait_url,
                }
                for p in self.cast
            ]
        )
        return f"{len(self.cast)} characters cast, {portraits} portraits"

    async def _generate_videos(self) -> str:
        scenes = self._scenes()
        tasks = [
            SceneTask(
                scene_id=scene.id,
                scene_number=scene.scene_number,
                prompt=scene.visual_prompt,
                duration_seconds=scene.duration_seconds,
                reference_image_url=scene.reference_image_url,
            )
            for scene in scenes
        ]

        def on_submitted(task: SceneTask) -> None:
            self._update_scene(
                task.scene_id,
                provider_job_id=task.job_id,
                status=SceneStatus.GENERATING.value,
            )

        def on_completed(task: SceneTask) -> None:
            self._update_scene(
                task.scene_id,
                video_url=task.asset_url,
                status=SceneStatus.COMPLETED.value,
            )

        def on_progress(done: int, total: int) -> None:
            self.ledger.update_stage_progress(
                self.movie_id,
                PipelineStage.GENERATE_VIDEOS,
                100 * done / total,
                detail=f"{done}/{total} scenes",
                total_scenes=total,
                scenes_completed=done,
            )

        fanout = SceneFanout(
            self.providers.video(),
            aspect_ratio=self.aspect_ratio,
            max_poll_rounds=settings.scene_max_poll_rounds,
            on_submitted=on_submitted,
            on_completed=on_completed,
            on_progress=on_progress,
            sleep=self.sleep,
        )
        self.ledger.update_stage_progress(
            self.movie_id,
            PipelineStage.GENERATE_VIDEOS,
            0,
            total_scenes=len(tasks),
            scenes_completed=0,
        )

        try:
            await fanout.run(tasks)
        except SceneGenerationError as e:
            failed = next(t for t in tasks if t.scene_number == e.scene_number)
            self._update_scene(
                failed.scene_id,
                status=SceneStatus.FAILED.value,
                error_message=e.message,
            )
            raise

        return f"{len(tasks)} scenes generated"

    async def _generate_audio(self) -> str:
        voice = self.providers.voice()
        scenes = [s for s in self._scenes() if s.dialogue]
        if not scenes:
            return "No dialogue"
        if voice is None:
            return "Skipped: no voice provider configured"

        storage = self.providers.storage()
        voices = {p.name: p.voice for p in self.cast}
        for i, scene in enumerate(scenes, start=1):
            lines = [
                SpokenLine(
                    character=entry["character"],
                    text=entry["line"],
                    voice_description=voices.get(entry["character"]),
                )
                for entry in scene.dialogue
            ]
            result = await voice.generate(VoiceoverRequest(lines=lines))
            stored = await storage.store_bytes(
                result.audio_data,
                "scene_audio",
                self.movie_id,
                ext=".mp3",
                mime_type=result.mime_type,
            )
            self._update_scene(scene.id, audio_url=stored.url)
            self._stage_progress(PipelineStage.GENERATE_AUDIO, i, len(scenes), "dialogue tracks")

        return f"{len(scenes)} dialogue tracks recorded"

    async def _apply_lip_sync(self) -> str:
        if self.options.get("include_lip_sync") is False:
            return "Skipped: not requested"
        lip_sync = self.providers.lip_sync()
        if lip_sync is None:
            return "Skipped: no lip-sync provider configured"

        scenes = [s for s in self._scenes() if s.audio_url and s.video_url]
        for i, scene in enumerate(scenes, start=1):
            try:
                url = await self._await_job(
                    lip_sync,
                    LipSyncRequest(video_url=scene.video_url, audio_url=scene.audio_url),
                    f"Lip-sync for scene {scene.scene_number}",
                )
            except JobsPendingError as e:
                raise ScenesPendingError([scene.scene_number]) from e
            self._update_scene(scene.id, lip_sync_video_url=url)
            self._stage_progress(PipelineStage.APPLY_LIP_SYNC, i, len(scenes), "scenes synced")

        return f"{len(scenes)} scenes lip-synced"

    async def _generate_music(self) -> str:
        if self.options.get("include_music") is False:
            return "Skipped: not requested"
        music = self.providers.music()
        if music is None:
            return "Skipped: no music provider configured"

        logline = self.screenplay.logline if self.screenplay else self.prompt
        duration = self.screenplay.total_duration if self.screenplay else 60.0
        url = await self._await_job(
            music,
            MusicRequest(
                prompt=f"{self.genre or 'cinematic'} film score. {logline}",
                duration_seconds=duration,
            ),
            "Soundtrack",
        )
        stored = await self.providers.storage().store_from_url(url, "music", self.movie_id, ext=".mp3")
        self.music_url = stored.url
        self._merge_metadata(music_url=stored.url)
        return "Soundtrack ready"

    async def _assemble_movie(self) -> str:
        clips = build_clips(self._scenes())
        qualities = self.options.get("quality_tiers") or settings.default_quality_tiers
        assembler = MovieAssembler(
            self.providers.renderer(),
            self.providers.storage(),
            sleep=self.sleep,
        )
        result = await assembler.assemble(
            self.movie_id,
            clips,
            qualities,
            aspect_ratio=self.aspect_ratio,
            music_url=self.music_url,
        )
        self._update_movie(video_urls=dict(result.video_urls), video_url=result.primary_url)
        return f"Rendered {', '.join(result.video_urls)}"

    async def _generate_cover(self) -> str:
        image_provider = self.providers.image()
        if image_provider is None:
            return "Skipped: no image provider configured"

        assembler = MovieAssembler(self.providers.renderer(), self.providers.storage(), sleep=self.sleep)
        title = self.screenplay.title if self.screenplay else "Untitled"
        logline = self.screenplay.logline if self.screenplay else self.prompt
        cover = await assembler.create_cover(
            self.movie_id,
            image_provider,
            title,
            logline,
            aspect_ratio=self.aspect_ratio,
        )
        self._update_movie(poster_url=cover.poster_url, thumbnail_url=cover.thumbnail_url)
        return "Cover ready"

    async def _finalize(self) -> str:
        with self.session_factory() as session:
            movie = session.get(MovieModel, self.movie_id)
            if not movie.video_url:
                raise ValueError("No rendered movie to publish")
            outputs = len(movie.video_urls or {})
        return f"{outputs} quality tiers published"
