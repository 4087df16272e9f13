"""Domain models and business logic."""

from movie_engine.domain.enums import (
    STAGE_ORDER,
    STAGE_ROW_STATUS,
    STAGE_WEIGHTS,
    Capability,
    MovieStatus,
    PipelineStage,
    SceneStatus,
    StageStatus,
)

__all__ = [
    "STAGE_ORDER",
    "STAGE_ROW_STATUS",
    "STAGE_WEIGHTS",
    "Capability",
    "MovieStatus",
    "PipelineStage",
    "SceneStatus",
    "StageStatus",
]
