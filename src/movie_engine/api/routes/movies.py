"""Movie run endpoints: create, execute and progress."""

import secrets
from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, status
from kombu.exceptions import OperationalError
from pydantic import BaseModel, Field

from movie_engine.api.deps import LedgerDep, SessionDep
from movie_engine.config import settings
from movie_engine.db.models import MovieModel
from movie_engine.domain.enums import MovieStatus
from movie_engine.errors import RunNotFoundError
from movie_engine.jobs.pipeline_tasks import execute_movie_pipeline_task
from movie_engine.logging import get_logger
from movie_engine.services.trigger import claim_run, dispatch_pipeline, run_pipeline_in_process

router = APIRouter(prefix="/movies", tags=["Movies"])
logger = get_logger(__name__)


class MovieOptions(BaseModel):
    """Per-run generation options."""

    quality_tiers: list[str] | None = Field(
        None, description="Quality tiers to render, e.g. ['1080p', '720p']"
    )
    aspect_ratio: str | None = Field(None, pattern=r"^\d+:\d+$")
    include_music: bool | None = Field(
        None, description="True requires a music provider; False skips the soundtrack"
    )
    include_lip_sync: bool | None = Field(
        None, description="True requires a lip-sync provider; False skips lip-sync"
    )


class CreateMovieRequest(BaseModel):
    """Request to create and start a movie run."""

    prompt: str = Field(..., min_length=10, max_length=5000, description="Movie idea")
    title: str | None = Field(None, max_length=255)
    genre: str | None = Field(None, max_length=100)
    target_duration_seconds: int | None = Field(None, ge=10, le=1800)
    options: MovieOptions = Field(default_factory=MovieOptions)


class CreateMovieResponse(BaseModel):
    """Response when a run is created."""

    movie_id: UUID
    status: str
    started: bool


class PipelineStartResponse(BaseModel):
    """Response from the execution endpoint."""

    started: bool


class RunSummary(BaseModel):
    """The movie row as observers see it."""

    id: UUID
    title: str | None
    status: str
    progress: int
    error_message: str | None
    video_url: str | None
    video_urls: dict[str, str] | None
    poster_url: str | None
    thumbnail_url: str | None
    created_at: datetime | None
    completed_at: datetime | None


class ProgressResponse(BaseModel):
    """Run summary plus its progress view."""

    run: RunSummary
    progress: dict[str, Any]


def _summary(movie: MovieModel) -> RunSummary:
    try:
        coarse = MovieStatus(movie.status).coarse.value
    except ValueError:
        coarse = MovieStatus.PROCESSING.value
    return RunSummary(
        id=movie.id,
        title=movie.title,
        status=coarse,
        progress=movie.progress or 0,
        error_message=movie.error_message,
        video_url=movie.video_url,
        video_urls=movie.video_urls,
        poster_url=movie.poster_url,
        thumbnail_url=movie.thumbnail_url,
        created_at=movie.created_at,
        completed_at=movie.completed_at,
    )


@router.post(
    "",
    response_model=CreateMovieResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Create movie",
    description="Create a queued movie run and start it out of band.",
)
async def create_movie(request: CreateMovieRequest, session: SessionDep) -> CreateMovieResponse:
    movie = MovieModel(
        title=request.title,
        user_prompt=request.prompt,
        genre=request.genre,
        target_duration_seconds=request.target_duration_seconds,
        options=request.options.model_dump(exclude_none=True),
        status=MovieStatus.QUEUED.value,
        progress=0,
    )
    session.add(movie)
    session.commit()
    logger.info("movie_created", movie_id=str(movie.id), prompt=request.prompt[:50])

    started = await dispatch_pipeline(movie.id)

    return CreateMovieResponse(movie_id=movie.id, status=MovieStatus.QUEUED.value, started=started)


@router.post(
    "/{movie_id}/pipeline",
    response_model=PipelineStartResponse,
    summary="Execute pipeline",
    description="Internal execution endpoint. Claims the run and enqueues it.",
)
async def start_pipeline(
    movie_id: UUID,
    session: SessionDep,
    background_tasks: BackgroundTasks,
    x_internal_token: Annotated[str | None, Header()] = None,
) -> PipelineStartResponse:
    expected = settings.internal_api_token
    if not expected or not x_internal_token or not secrets.compare_digest(
        x_internal_token.encode(), expected.encode()
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid internal token")

    movie = session.get(MovieModel, movie_id)
    if movie is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Movie not found")

    claimed = claim_run(session, movie_id)
    session.commit()
    if not claimed:
        return PipelineStartResponse(started=False)

    try:
        task = execute_movie_pipeline_task.delay(str(movie_id))
    except OperationalError as e:
        logger.warning("pipeline_enqueue_failed_running_inline", movie_id=str(movie_id), error=str(e))
        background_tasks.add_task(run_pipeline_in_process, movie_id)
        return PipelineStartResponse(started=True)

    movie.pipeline_task_id = task.id
    session.commit()
    logger.info("pipeline_enqueued", movie_id=str(movie_id), task_id=task.id)
    return PipelineStartResponse(started=True)


@router.get(
    "/{movie_id}/progress",
    response_model=ProgressResponse,
    summary="Run progress",
    description="Progress of a run. Reconstructed from the movie row if no ledger exists.",
)
async def get_progress(movie_id: UUID, session: SessionDep, ledger: LedgerDep) -> ProgressResponse:
    movie = session.get(MovieModel, movie_id)
    if movie is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Movie not found")

    try:
        view = ledger.read(movie_id)
    except RunNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    return ProgressResponse(run=_summary(movie), progress=view.to_dict())
