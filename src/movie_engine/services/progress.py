"""Progress ledger: the persisted per-run progress document.

The orchestrator is the only writer. Every write also mirrors ``progress``,
``status`` and ``error_message`` onto the movie row in the same transaction.
Observers read through ``ProgressLedger.read``, which falls back to a
reconstruction from the movie row when the document was never written.

Two estimators exist and are not expected to agree:

- ledger-driven: sum of stage weights scaled by each stage's progress;
- status-driven: a fixed table from the movie row's status (used only when
  the ledger document is missing).
"""

import copy
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from movie_engine.db.models import MovieModel, MovieProgressModel
from movie_engine.db.session import SessionFactory, get_session_context
from movie_engine.domain.enums import (
    STAGE_ORDER,
    STAGE_ROW_STATUS,
    STAGE_WEIGHTS,
    MovieStatus,
    PipelineStage,
    StageStatus,
)
from movie_engine.errors import MovieEngineError, RunNotFoundError
from movie_engine.logging import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _parse_ts(value: str | None) -> datetime | None:
    return as_utc(datetime.fromisoformat(value)) if value else None


def _format_ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class StageRecord:
    """Status of one stage within a run."""

    status: StageStatus = StageStatus.PENDING
    progress: int = 0
    detail: str | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "progress": self.progress,
            "detail": self.detail,
            "updated_at": _format_ts(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StageRecord":
        return cls(
            status=StageStatus(data.get("status", StageStatus.PENDING)),
            progress=int(data.get("progress", 0)),
            detail=data.get("detail"),
            updated_at=_parse_ts(data.get("updated_at")),
        )


@dataclass
class ErrorEntry:
    """One entry in a run's append-only error log."""

    stage: str
    message: str
    timestamp: datetime
    recoverable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "message": self.message,
            "timestamp": _format_ts(self.timestamp),
            "recoverable": self.recoverable,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ErrorEntry":
        return cls(
            stage=data["stage"],
            message=data["message"],
            timestamp=_parse_ts(data.get("timestamp")) or utcnow(),
            recoverable=bool(data.get("recoverable", False)),
        )


@dataclass
class RunStats:
    total_scenes: int = 0
    scenes_completed: int = 0
    # Seconds, derived at read time
    elapsed_time: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_scenes": self.total_scenes,
            "scenes_completed": self.scenes_completed,
            "elapsed_time": self.elapsed_time,
        }


@dataclass
class RunView:
    """What an observer sees when reading a run's progress."""

    movie_id: UUID
    overall_status: MovieStatus
    overall_progress: int
    current_stage: str | None
    current_stage_detail: str | None
    stages: dict[str, StageRecord]
    stats: RunStats
    errors: list[ErrorEntry] = field(default_factory=list)
    started_at: datetime | None = None
    updated_at: datetime | None = None
    # True when synthesized from the movie row because no ledger exists
    reconstructed: bool = False

    @property
    def running_stages(self) -> list[str]:
        return [name for name, rec in self.stages.items() if rec.status is StageStatus.RUNNING]

    def to_dict(self) -> dict[str, Any]:
        return {
            "movie_id": str(self.movie_id),
            "overall_status": self.overall_status.value,
            "overall_progress": self.overall_progress,
            "current_stage": self.current_stage,
            "current_stage_detail": self.current_stage_detail,
            "stages": {name: rec.to_dict() for name, rec in self.stages.items()},
            "stats": self.stats.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
            "started_at": _format_ts(self.started_at),
            "updated_at": _format_ts(self.updated_at),
            "reconstructed": self.reconstructed,
        }


def compute_overall_progress(stages: dict[str, StageRecord]) -> int:
    """Weighted progress: completed stages count fully, running ones pro rata."""
    total = 0.0
    for name, record in stages.items():
        try:
            weight = STAGE_WEIGHTS[PipelineStage(name)]
        except ValueError:
            continue
        if record.status is StageStatus.COMPLETED:
            total += weight
        elif record.status is StageStatus.RUNNING:
            total += weight * record.progress / 100
    return max(0, min(100, int(total)))


def _ordered(stages: dict[str, StageRecord]) -> dict[str, StageRecord]:
    """Stages in pipeline order (JSONB does not keep key order)."""
    known = [s.value for s in STAGE_ORDER if s.value in stages]
    extra = [name for name in stages if name not in known]
    return {name: stages[name] for name in known + extra}


# Status-driven estimator: movie row status -> (stage, progress)
FALLBACK_STAGE_BY_STATUS: dict[MovieStatus, tuple[PipelineStage, int]] = {
    MovieStatus.QUEUED: (PipelineStage.VALIDATE_PROVIDERS, 0),
    MovieStatus.PROCESSING: (PipelineStage.VALIDATE_PROVIDERS, 5),
    MovieStatus.SCRIPT_GENERATING: (PipelineStage.GENERATE_SCREENPLAY, 15),
    MovieStatus.VIDEO_GENERATING: (PipelineStage.GENERATE_VIDEOS, 30),
    MovieStatus.AUDIO_GENERATING: (PipelineStage.GENERATE_AUDIO, 60),
    MovieStatus.ASSEMBLING: (PipelineStage.ASSEMBLE_MOVIE, 85),
    MovieStatus.COMPLETED: (PipelineStage.FINALIZE, 100),
    MovieStatus.FAILED: (PipelineStage.FINALIZE, 0),
}

# For a bare "processing" row: lowest progress at which each stage is assumed
FALLBACK_PROGRESS_THRESHOLDS: list[tuple[int, PipelineStage]] = [
    (90, PipelineStage.FINALIZE),
    (80, PipelineStage.ASSEMBLE_MOVIE),
    (70, PipelineStage.GENERATE_COVER),
    (50, PipelineStage.GENERATE_MUSIC),
    (40, PipelineStage.APPLY_LIP_SYNC),
    (25, PipelineStage.GENERATE_AUDIO),
    (15, PipelineStage.GENERATE_VIDEOS),
    (8, PipelineStage.ASSIGN_CHARACTERS),
    (5, PipelineStage.GENERATE_SCREENPLAY),
    (2, PipelineStage.RESEARCH_LOCATIONS),
]


def _row_status(movie: MovieModel) -> MovieStatus:
    try:
        return MovieStatus(movie.status)
    except ValueError:
        return MovieStatus.PROCESSING


def _scene_counts(movie: MovieModel) -> tuple[int, int]:
    total = len(movie.scenes)
    done = sum(1 for scene in movie.scenes if scene.video_url)
    return total, done


def reconstruct_run_view(movie: MovieModel, now: datetime) -> RunView:
    """Best-effort view synthesized purely from the movie row.

    Deterministic for a given row and ``now``: every timestamp comes from the
    row, never from the clock, except ``elapsed_time`` for a live run.
    """
    status = _row_status(movie)
    stage, table_progress = FALLBACK_STAGE_BY_STATUS[status]
    total_scenes, scenes_completed = _scene_counts(movie)

    if movie.progress and movie.progress > 0:
        progress = movie.progress
    elif status is MovieStatus.COMPLETED:
        progress = 100
    elif status is MovieStatus.VIDEO_GENERATING and total_scenes > 0:
        progress = 20 + (50 * scenes_completed) // total_scenes
    else:
        progress = table_progress
    progress = max(0, min(100, progress))

    if status is MovieStatus.PROCESSING and (movie.progress or 0) > 0:
        for threshold, candidate in FALLBACK_PROGRESS_THRESHOLDS:
            if progress >= threshold:
                stage = candidate
                break

    updated_at = as_utc(movie.updated_at) or as_utc(movie.created_at)
    current_index = STAGE_ORDER.index(stage)
    stages: dict[str, StageRecord] = {}
    for index, name in enumerate(STAGE_ORDER):
        if status is MovieStatus.COMPLETED or index < current_index:
            stages[name.value] = StageRecord(StageStatus.COMPLETED, 100, None, updated_at)
        elif index == current_index:
            if status is MovieStatus.FAILED:
                stage_status = StageStatus.FAILED
            elif status is MovieStatus.QUEUED:
                stage_status = StageStatus.PENDING
            else:
                stage_status = StageStatus.RUNNING
            stages[name.value] = StageRecord(stage_status, 0, None, updated_at)
        else:
            stages[name.value] = StageRecord(StageStatus.PENDING, 0, None, None)

    errors = []
    if status is MovieStatus.FAILED and movie.error_message:
        errors.append(
            ErrorEntry(
                stage=stage.value,
                message=movie.error_message,
                timestamp=updated_at or now,
            )
        )

    started_at = as_utc(movie.created_at)
    return RunView(
        movie_id=movie.id,
        overall_status=status.coarse,
        overall_progress=progress,
        current_stage=stage.value,
        current_stage_detail=None,
        stages=stages,
        stats=RunStats(
            total_scenes=total_scenes,
            scenes_completed=scenes_completed,
            elapsed_time=_elapsed(started_at, status, movie, updated_at, now),
        ),
        errors=errors,
        started_at=started_at,
        updated_at=updated_at,
        reconstructed=True,
    )


def _elapsed(
    started_at: datetime | None,
    status: MovieStatus,
    movie: MovieModel,
    updated_at: datetime | None,
    now: datetime,
) -> float | None:
    """Seconds since start; frozen at the terminal write once the run ends."""
    if started_at is None:
        return None
    end = now
    if status is MovieStatus.COMPLETED:
        end = as_utc(movie.completed_at) or updated_at or now
    elif status is MovieStatus.FAILED:
        end = updated_at or now
    return max(0.0, (end - started_at).total_seconds())


class ProgressLedger:
    """Reads and writes the per-run progress document.

    Args:
        session_factory: Returns a context manager yielding a session that
            commits on exit. Each ledger call is one transaction.
        clock: Source of ``now`` for write timestamps.
    """

    def __init__(
        self,
        session_factory: SessionFactory = get_session_context,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock

    # ------------------------------------------------------------------ writes

    def init(
        self,
        movie_id: UUID,
        stages: Sequence[PipelineStage] = STAGE_ORDER,
        detail: str | None = None,
    ) -> None:
        """Seed the document: first stage running at 0%, the rest pending."""
        now = self.clock()
        with self.session_factory() as session:
            movie = self._movie(session, movie_id)
            records = {
                stage.value: StageRecord(
                    status=StageStatus.RUNNING if i == 0 else StageStatus.PENDING,
                    progress=0,
                    detail=detail if i == 0 else None,
                    updated_at=now if i == 0 else None,
                ).to_dict()
                for i, stage in enumerate(stages)
            }
            first = stages[0]

            doc = session.get(MovieProgressModel, movie_id)
            if doc is None:
                doc = MovieProgressModel(movie_id=movie_id)
                session.add(doc)
            doc.overall_status = MovieStatus.PROCESSING.value
            doc.overall_progress = 0
            doc.current_stage = first.value
            doc.current_stage_detail = detail
            doc.stages = records
            doc.stats = {"total_scenes": 0, "scenes_completed": 0}
            doc.errors = []
            doc.started_at = now
            doc.updated_at = now

            movie.status = STAGE_ROW_STATUS.get(first, MovieStatus.PROCESSING).value
            movie.progress = 0
            movie.error_message = None

        logger.info("progress_initialized", movie_id=str(movie_id), first_stage=first.value)

    def begin_stage(self, movie_id: UUID, stage: PipelineStage, detail: str | None = None) -> None:
        """Mark a stage running and make it the current stage."""

        def apply(doc: MovieProgressModel, stages: dict[str, StageRecord], now: datetime) -> None:
            others = [n for n in self._running(stages) if n != stage.value]
            if others:
                raise MovieEngineError(
                    f"Cannot begin {stage.value} while {', '.join(others)} is running"
                )
            record = stages.setdefault(stage.value, StageRecord())
            record.status = StageStatus.RUNNING
            record.detail = detail
            record.updated_at = now
            doc.current_stage = stage.value
            doc.current_stage_detail = detail

        self._mutate(movie_id, apply, row_status=STAGE_ROW_STATUS.get(stage))
        logger.info("stage_started", movie_id=str(movie_id), stage=stage.value, detail=detail)

    def update_stage_progress(
        self,
        movie_id: UUID,
        stage: PipelineStage,
        pct: float,
        detail: str | None = None,
        total_scenes: int | None = None,
        scenes_completed: int | None = None,
    ) -> None:
        """Raise a running stage's percentage (clamped 0-100, never lowered)."""

        def apply(doc: MovieProgressModel, stages: dict[str, StageRecord], now: datetime) -> None:
            record = stages.get(stage.value)
            if record is None or record.status is not StageStatus.RUNNING:
                logger.warning(
                    "progress_update_ignored",
                    movie_id=str(movie_id),
                    stage=stage.value,
                    status=record.status.value if record else None,
                )
                return
            record.progress = max(record.progress, int(max(0.0, min(100.0, pct))))
            if detail is not None:
                record.detail = detail
                doc.current_stage_detail = detail
            record.updated_at = now
            if total_scenes is not None or scenes_completed is not None:
                stats = dict(doc.stats or {})
                if total_scenes is not None:
                    stats["total_scenes"] = total_scenes
                if scenes_completed is not None:
                    stats["scenes_completed"] = scenes_completed
                doc.stats = stats

        self._mutate(movie_id, apply)

    def complete_stage(self, movie_id: UUID, stage: PipelineStage, detail: str | None = None) -> None:
        """Mark a stage completed at 100%."""

        def apply(doc: MovieProgressModel, stages: dict[str, StageRecord], now: datetime) -> None:
            record = stages.setdefault(stage.value, StageRecord())
            record.status = StageStatus.COMPLETED
            record.progress = 100
            if detail is not None:
                record.detail = detail
            record.updated_at = now
            if doc.current_stage == stage.value and detail is not None:
                doc.current_stage_detail = detail

        self._mutate(movie_id, apply)
        logger.info("stage_completed", movie_id=str(movie_id), stage=stage.value, detail=detail)

    def fail_run(
        self,
        movie_id: UUID,
        stage: PipelineStage,
        message: str,
        recoverable: bool = False,
    ) -> None:
        """Record a stage failure and move the run to ``failed``.

        Works whether or not the document exists; a missing document is seeded
        with every stage pending first. Overall progress is frozen at its
        current value. A run already in a terminal state is left untouched.
        """
        now = self.clock()
        with self.session_factory() as session:
            movie = self._movie(session, movie_id)
            doc = session.get(MovieProgressModel, movie_id)
            if doc is None:
                doc = MovieProgressModel(
                    movie_id=movie_id,
                    overall_progress=movie.progress or 0,
                    stages={s.value: StageRecord().to_dict() for s in STAGE_ORDER},
                    stats={"total_scenes": 0, "scenes_completed": 0},
                    errors=[],
                    started_at=as_utc(movie.created_at) or now,
                )
                session.add(doc)
            elif MovieStatus(doc.overall_status).is_terminal:
                logger.warning(
                    "fail_run_ignored_terminal",
                    movie_id=str(movie_id),
                    status=doc.overall_status,
                )
                return

            stages = {name: StageRecord.from_dict(data) for name, data in doc.stages.items()}
            record = stages.setdefault(stage.value, StageRecord())
            record.status = StageStatus.FAILED
            record.detail = message
            record.updated_at = now

            errors = list(doc.errors or [])
            errors.append(ErrorEntry(stage.value, message, now, recoverable).to_dict())

            doc.stages = {name: rec.to_dict() for name, rec in stages.items()}
            doc.errors = errors
            doc.overall_status = MovieStatus.FAILED.value
            doc.current_stage = stage.value
            doc.current_stage_detail = message
            doc.updated_at = now

            movie.status = MovieStatus.FAILED.value
            movie.progress = doc.overall_progress
            movie.error_message = message

        logger.error("run_failed", movie_id=str(movie_id), stage=stage.value, error=message)

    def complete_run(self, movie_id: UUID, detail: str | None = None) -> None:
        """Commit the success terminal state (progress forced to 100)."""
        now = self.clock()
        with self.session_factory() as session:
            movie = self._movie(session, movie_id)
            doc = self._doc(session, movie_id)
            if MovieStatus(doc.overall_status).is_terminal:
                logger.warning(
                    "complete_run_ignored_terminal",
                    movie_id=str(movie_id),
                    status=doc.overall_status,
                )
                return

            doc.overall_status = MovieStatus.COMPLETED.value
            doc.overall_progress = 100
            doc.current_stage = PipelineStage.FINALIZE.value
            doc.current_stage_detail = detail
            doc.updated_at = now

            movie.status = MovieStatus.COMPLETED.value
            movie.progress = 100
            movie.completed_at = now

        logger.info("run_completed", movie_id=str(movie_id))

    # ------------------------------------------------------------------- reads

    def read(self, movie_id: UUID, now: datetime | None = None) -> RunView:
        """Current view of a run.

        Never fails because the ledger document is missing; only an unknown
        movie id raises.

        Raises:
            RunNotFoundError: If no movie row exists.
        """
        now = now or self.clock()
        with self.session_factory() as session:
            movie = self._movie(session, movie_id)
            doc = session.get(MovieProgressModel, movie_id)
            if doc is None:
                return reconstruct_run_view(movie, now)
            return self._view_from_doc(movie, doc, now)

    def _view_from_doc(self, movie: MovieModel, doc: MovieProgressModel, now: datetime) -> RunView:
        status = MovieStatus(doc.overall_status)
        stages = _ordered(
            {name: StageRecord.from_dict(data) for name, data in doc.stages.items()}
        )
        stats = doc.stats or {}
        started_at = as_utc(doc.started_at)
        updated_at = as_utc(doc.updated_at)
        return RunView(
            movie_id=movie.id,
            overall_status=status,
            overall_progress=doc.overall_progress,
            current_stage=doc.current_stage,
            current_stage_detail=doc.current_stage_detail,
            stages=stages,
            stats=RunStats(
                total_scenes=int(stats.get("total_scenes", 0)),
                scenes_completed=int(stats.get("scenes_completed", 0)),
                elapsed_time=_elapsed(started_at, status, movie, updated_at, now),
            ),
            errors=[ErrorEntry.from_dict(e) for e in doc.errors or []],
            started_at=started_at,
            updated_at=updated_at,
        )

    # ----------------------------------------------------------------- helpers

    @staticmethod
    def _running(stages: dict[str, StageRecord]) -> Iterator[str]:
        return (name for name, rec in stages.items() if rec.status is StageStatus.RUNNING)

    @staticmethod
    def _movie(session: Session, movie_id: UUID) -> MovieModel:
        movie = session.get(MovieModel, movie_id)
        if movie is None:
            raise RunNotFoundError(f"Movie {movie_id} not found")
        return movie

    @staticmethod
    def _doc(session: Session, movie_id: UUID) -> MovieProgressModel:
        doc = session.get(MovieProgressModel, movie_id)
        if doc is None:
            raise MovieEngineError(f"Progress ledger for movie {movie_id} was never initialized")
        return doc

    def _mutate(
        self,
        movie_id: UUID,
        apply: Callable[[MovieProgressModel, dict[str, StageRecord], datetime], None],
        row_status: MovieStatus | None = None,
    ) -> None:
        """Apply a change to a live document, then recompute overall progress."""
        now = self.clock()
        with self.session_factory() as session:
            movie = self._movie(session, movie_id)
            doc = self._doc(session, movie_id)
            if MovieStatus(doc.overall_status).is_terminal:
                logger.warning(
                    "progress_write_ignored_terminal",
                    movie_id=str(movie_id),
                    status=doc.overall_status,
                )
                return

            stages = {
                name: StageRecord.from_dict(data)
                for name, data in copy.deepcopy(doc.stages).items()
            }
            apply(doc, stages, now)

            doc.stages = {name: rec.to_dict() for name, rec in stages.items()}
            doc.overall_progress = max(doc.overall_progress, compute_overall_progress(stages))
            doc.updated_at = now

            movie.progress = doc.overall_progress
            if row_status is not None:
                movie.status = row_status.value
