"""Fire-and-forget execution triggers.

A created run is handed off by one of two strategies behind the same
interface. ``RemoteTrigger`` posts to the execution endpoint and returns as
soon as that endpoint answers. ``DirectTrigger`` runs the orchestrator in a
background thread of the current process. ``dispatch_pipeline`` tries the
remote trigger first and falls back to direct execution only when the remote
hand-off itself fails, so a created run is never left stuck in ``queued``.

At most one trigger per run is enforced by ``claim_run``, an atomic
conditional update on the movie row.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from uuid import UUID

import httpx
from sqlalchemy import update
from sqlalchemy.orm import Session

from movie_engine.config import settings
from movie_engine.db.models import MovieModel
from movie_engine.db.session import SessionFactory, get_session_context
from movie_engine.domain.enums import MovieStatus
from movie_engine.errors import (
    PipelineStageError,
    RunNotFoundError,
    RunNotQueuedError,
    TriggerError,
)
from movie_engine.logging import get_logger
from movie_engine.services.orchestrator import PipelineOrchestrator
from movie_engine.services.progress import utcnow
from movie_engine.utils.async_utils import run_in_new_loop

logger = get_logger(__name__)

EXECUTION_PATH = "/api/v1/movies/{movie_id}/pipeline"


def claim_run(session: Session, movie_id: UUID) -> bool:
    """Atomically claim a queued run for execution.

    Returns True for exactly one caller per run; every later caller (or a
    run that is no longer queued) gets False.
    """
    result = session.execute(
        update(MovieModel)
        .where(
            MovieModel.id == movie_id,
            MovieModel.status == MovieStatus.QUEUED.value,
            MovieModel.pipeline_claimed_at.is_(None),
        )
        .values(pipeline_claimed_at=utcnow())
    )
    claimed = result.rowcount == 1
    logger.info("run_claim", movie_id=str(movie_id), claimed=claimed)
    return claimed


def run_pipeline_in_process(movie_id: UUID) -> bool:
    """Execute a claimed run to completion on a private event loop.

    Returns True if the run completed. Stage failures are already recorded on
    the run by the orchestrator and are only logged here.
    """
    try:
        run_in_new_loop(PipelineOrchestrator(movie_id).execute())
    except PipelineStageError as e:
        logger.error("direct_pipeline_failed", movie_id=str(movie_id), stage=e.stage, error=e.message)
        return False
    except (RunNotFoundError, RunNotQueuedError) as e:
        logger.warning("direct_pipeline_not_started", movie_id=str(movie_id), reason=str(e))
        return False
    return True


class PipelineTrigger(ABC):
    """Starts a queued run out of band."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def start(self, movie_id: UUID) -> bool:
        """Hand the run off and return whether it was started.

        ``False`` means the run was not eligible (already claimed or not
        queued); that is an answer, not a failure.

        Raises:
            TriggerError: If the hand-off mechanism itself failed.
        """
        pass


class RemoteTrigger(PipelineTrigger):
    """Posts to the per-run execution endpoint with the shared token."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.app_base_url).rstrip("/")
        self.token = token or settings.internal_api_token
        self.timeout = timeout or settings.pipeline_trigger_timeout_seconds

    @property
    def name(self) -> str:
        return "remote"

    async def start(self, movie_id: UUID) -> bool:
        if not self.token:
            raise TriggerError("INTERNAL_API_TOKEN is not set")

        url = self.base_url + EXECUTION_PATH.format(movie_id=movie_id)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers={"X-Internal-Token": self.token})
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise TriggerError(f"Remote trigger failed: {e}") from e
        except ValueError as e:
            raise TriggerError(f"Remote trigger returned invalid JSON: {e}") from e

        started = bool(data.get("started"))
        logger.info("remote_trigger_sent", movie_id=str(movie_id), started=started)
        return started


class DirectTrigger(PipelineTrigger):
    """Claims the run and executes it in a daemon thread of this process."""

    def __init__(
        self,
        session_factory: SessionFactory = get_session_context,
        runner: Callable[[UUID], bool] = run_pipeline_in_process,
    ) -> None:
        self.session_factory = session_factory
        self.runner = runner

    @property
    def name(self) -> str:
        return "direct"

    async def start(self, movie_id: UUID) -> bool:
        with self.session_factory() as session:
            if not claim_run(session, movie_id):
                return False

        thread = threading.Thread(
            target=self.runner,
            args=(movie_id,),
            name=f"pipeline-{movie_id}",
            daemon=True,
        )
        thread.start()
        logger.info("direct_trigger_started", movie_id=str(movie_id), thread=thread.name)
        return True


async def dispatch_pipeline(
    movie_id: UUID,
    remote: PipelineTrigger | None = None,
    direct: PipelineTrigger | None = None,
) -> bool:
    """Start a run, falling back to direct execution if the remote trigger fails."""
    remote = remote or RemoteTrigger()
    try:
        return await remote.start(movie_id)
    except TriggerError as e:
        logger.warning("remote_trigger_failed_falling_back", movie_id=str(movie_id), error=str(e))

    direct = direct or DirectTrigger()
    return await direct.start(movie_id)
