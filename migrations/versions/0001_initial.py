"""Initial schema: movies, scenes, progress ledger and provider bindings

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Movies table (one row per generation run)
    op.create_table(
        "movies",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("user_prompt", sa.Text(), nullable=False),
        sa.Column("genre", sa.String(100), nullable=True),
        sa.Column("target_duration_seconds", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="queued"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("options", JSONB(), nullable=True),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("video_urls", JSONB(), nullable=True),
        sa.Column("poster_url", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("metadata_", JSONB(), nullable=True),
        sa.Column("pipeline_claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pipeline_task_id", sa.String(255), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), onupdate=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_movies_status", "movies", ["status"])
    op.create_index("ix_movies_created_at", "movies", ["created_at"])

    # Scenes table
    op.create_table(
        "movie_scenes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("movie_id", sa.UUID(), nullable=False),
        sa.Column("scene_number", sa.Integer(), nullable=False),
        sa.Column("scene_code", sa.String(20), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("visual_prompt", sa.Text(), nullable=False),
        sa.Column("duration_seconds", sa.Float(), nullable=False, server_default="5.0"),
        sa.Column("characters", JSONB(), nullable=True),
        sa.Column("dialogue", JSONB(), nullable=True),
        sa.Column("reference_image_url", sa.Text(), nullable=True),
        sa.Column("provider_job_id", sa.String(255), nullable=True),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("audio_url", sa.Text(), nullable=True),
        sa.Column("lip_sync_video_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), onupdate=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["movie_id"], ["movies.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("movie_id", "scene_number", name="uq_movie_scene_number"),
    )
    op.create_index("ix_movie_scenes_movie_id", "movie_scenes", ["movie_id"])

    # Progress ledger (one document per run)
    op.create_table(
        "movie_creation_progress",
        sa.Column("movie_id", sa.UUID(), nullable=False),
        sa.Column("overall_status", sa.String(50), nullable=False),
        sa.Column("overall_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_stage", sa.String(50), nullable=True),
        sa.Column("current_stage_detail", sa.Text(), nullable=True),
        sa.Column("stages", JSONB(), nullable=False),
        sa.Column("stats", JSONB(), nullable=True),
        sa.Column("errors", JSONB(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("movie_id"),
        sa.ForeignKeyConstraint(["movie_id"], ["movies.id"], ondelete="CASCADE"),
    )

    # Provider bindings
    op.create_table(
        "provider_bindings",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("capability", sa.String(50), nullable=False),
        sa.Column("provider_id", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("api_key_encrypted", sa.Text(), nullable=True),
        sa.Column("api_url", sa.Text(), nullable=True),
        sa.Column("config", JSONB(), nullable=True),
        sa.Column("simulation_mode", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), onupdate=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_provider_bindings_capability", "provider_bindings", ["capability"])
    op.create_index("ix_provider_bindings_is_active", "provider_bindings", ["is_active"])


def downgrade() -> None:
    op.drop_table("provider_bindings")
    op.drop_table("movie_creation_progress")
    op.drop_table("movie_scenes")
    op.drop_table("movies")
