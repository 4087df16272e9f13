"""Celery task that executes a movie's generation pipeline."""

from typing import Any
from uuid import UUID

from movie_engine.config import settings
from movie_engine.errors import PipelineStageError, RunNotFoundError, RunNotQueuedError
from movie_engine.logging import get_logger
from movie_engine.services.orchestrator import PipelineOrchestrator
from movie_engine.utils.async_utils import run_async
from movie_engine.worker import celery_app

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    name="pipeline.execute_movie",
    soft_time_limit=settings.pipeline_task_time_limit_seconds - 60,
    time_limit=settings.pipeline_task_time_limit_seconds,
)
def execute_movie_pipeline_task(self: Any, movie_id: str) -> dict[str, Any]:
    """Run the full pipeline for a claimed, queued movie.

    Args:
        movie_id: UUID of the movie (run id)

    Returns:
        Dict with success flag, and the failed stage and error on failure
    """
    task_id = self.request.id
    logger.info("movie_pipeline_task_started", task_id=task_id, movie_id=movie_id)

    try:
        run_async(PipelineOrchestrator(UUID(movie_id)).execute())
    except PipelineStageError as e:
        logger.error(
            "movie_pipeline_task_failed",
            task_id=task_id,
            movie_id=movie_id,
            stage=e.stage,
            error=e.message,
        )
        return {"success": False, "movie_id": movie_id, "stage": e.stage, "error": e.message}
    except (RunNotFoundError, RunNotQueuedError) as e:
        logger.warning("movie_pipeline_task_skipped", task_id=task_id, movie_id=movie_id, reason=str(e))
        return {"success": False, "movie_id": movie_id, "error": str(e)}

    logger.info("movie_pipeline_task_completed", task_id=task_id, movie_id=movie_id)
    return {"success": True, "movie_id": movie_id}
