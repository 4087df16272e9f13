"""SQLAlchemy ORM models."""

from datetime import datetime
from typing import Any
from uuid import UUID as PyUUID
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class MovieModel(Base):
    """Movie ORM model. One row per generation run; the row id is the run id."""

    __tablename__ = "movies"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    genre: Mapped[str | None] = mapped_column(String(100), nullable=True)
    target_duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="queued", index=True)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # quality_tiers, aspect_ratio, include_music, include_lip_sync
    options: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_urls: Mapped[dict[str, str] | None] = mapped_column(JSONType, nullable=True)
    poster_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata_", JSONType, nullable=True)
    pipeline_claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pipeline_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    # Relationships
    scenes: Mapped[list["MovieSceneModel"]] = relationship(
        "MovieSceneModel",
        back_populates="movie",
        cascade="all, delete-orphan",
        order_by="MovieSceneModel.scene_number",
    )
    progress_doc: Mapped["MovieProgressModel | None"] = relationship(
        "MovieProgressModel", back_populates="movie", uselist=False, cascade="all, delete-orphan"
    )


class MovieSceneModel(Base):
    """Scene ORM model. Holds the persisted outputs of each scene's provider jobs."""

    __tablename__ = "movie_scenes"
    __table_args__ = (UniqueConstraint("movie_id", "scene_number", name="uq_movie_scene_number"),)

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    movie_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("movies.id", ondelete="CASCADE"), index=True
    )
    scene_number: Mapped[int] = mapped_column(Integer, nullable=False)
    scene_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    visual_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    duration_seconds: Mapped[float] = mapped_column(Float, default=5.0)
    characters: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    # [{"character": ..., "line": ...}]
    dialogue: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    reference_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_job_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    audio_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    lip_sync_video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="pending")
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    # Relationships
    movie: Mapped["MovieModel"] = relationship("MovieModel", back_populates="scenes")


class MovieProgressModel(Base):
    """Progress ledger document, one per run."""

    __tablename__ = "movie_creation_progress"

    movie_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("movies.id", ondelete="CASCADE"), primary_key=True
    )
    overall_status: Mapped[str] = mapped_column(String(50), nullable=False)
    overall_progress: Mapped[int] = mapped_column(Integer, default=0)
    current_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    current_stage_detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    # {stage: {status, progress, detail, updated_at}}
    stages: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    # {total_scenes, scenes_completed}
    stats: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    # [{stage, message, timestamp, recoverable}]
    errors: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    movie: Mapped["MovieModel"] = relationship("MovieModel", back_populates="progress_doc")


class ProviderBindingModel(Base):
    """Configured external provider for one capability.

    For each capability the active row with the lowest priority is the primary
    provider and the next one is the fallback.
    """

    __tablename__ = "provider_bindings"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    capability: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    provider_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    api_key_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    api_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    config: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    simulation_mode: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )
