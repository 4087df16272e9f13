"""Domain enumerations."""

from enum import StrEnum


class MovieStatus(StrEnum):
    """Status of a movie generation run as stored on the movie row.

    The coarse lifecycle is queued -> processing -> completed | failed. While
    processing, the orchestrator writes one of the stage-specific values so
    older clients that poll the row directly still see something useful.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    SCRIPT_GENERATING = "script_generating"
    VIDEO_GENERATING = "video_generating"
    AUDIO_GENERATING = "audio_generating"
    ASSEMBLING = "assembling"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MovieStatus.COMPLETED, MovieStatus.FAILED)

    @property
    def coarse(self) -> "MovieStatus":
        """Collapse stage-specific values into the four lifecycle states."""
        if self in (MovieStatus.QUEUED, MovieStatus.COMPLETED, MovieStatus.FAILED):
            return self
        return MovieStatus.PROCESSING


class StageStatus(StrEnum):
    """Status of a single pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SceneStatus(StrEnum):
    """Status of a scene's media generation."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class Capability(StrEnum):
    """Categories of external generation service."""

    SCRIPT = "script"
    VIDEO = "video"
    VOICE = "voice"
    LIP_SYNC = "lip_sync"
    MUSIC = "music"
    IMAGE = "image"
    STORAGE = "storage"


class PipelineStage(StrEnum):
    """Pipeline stages, declared in execution order."""

    VALIDATE_PROVIDERS = "validate_providers"
    RESEARCH_LOCATIONS = "research_locations"
    GENERATE_SCREENPLAY = "generate_screenplay"
    ASSIGN_CHARACTERS = "assign_characters"
    GENERATE_VIDEOS = "generate_videos"
    GENERATE_AUDIO = "generate_audio"
    APPLY_LIP_SYNC = "apply_lip_sync"
    GENERATE_MUSIC = "generate_music"
    ASSEMBLE_MOVIE = "assemble_movie"
    GENERATE_COVER = "generate_cover"
    FINALIZE = "finalize"


# Execution order
STAGE_ORDER: list[PipelineStage] = list(PipelineStage)

# Share of overall progress each stage represents (sums to 100)
STAGE_WEIGHTS: dict[PipelineStage, int] = {
    PipelineStage.VALIDATE_PROVIDERS: 2,
    PipelineStage.RESEARCH_LOCATIONS: 5,
    PipelineStage.GENERATE_SCREENPLAY: 10,
    PipelineStage.ASSIGN_CHARACTERS: 8,
    PipelineStage.GENERATE_VIDEOS: 35,
    PipelineStage.GENERATE_AUDIO: 10,
    PipelineStage.APPLY_LIP_SYNC: 10,
    PipelineStage.GENERATE_MUSIC: 5,
    PipelineStage.ASSEMBLE_MOVIE: 10,
    PipelineStage.GENERATE_COVER: 3,
    PipelineStage.FINALIZE: 2,
}

# Row status written while each stage runs
STAGE_ROW_STATUS: dict[PipelineStage, MovieStatus] = {
    PipelineStage.VALIDATE_PROVIDERS: MovieStatus.PROCESSING,
    PipelineStage.RESEARCH_LOCATIONS: MovieStatus.SCRIPT_GENERATING,
    PipelineStage.GENERATE_SCREENPLAY: MovieStatus.SCRIPT_GENERATING,
    PipelineStage.ASSIGN_CHARACTERS: MovieStatus.SCRIPT_GENERATING,
    PipelineStage.GENERATE_VIDEOS: MovieStatus.VIDEO_GENERATING,
    PipelineStage.GENERATE_AUDIO: MovieStatus.AUDIO_GENERATING,
    PipelineStage.APPLY_LIP_SYNC: MovieStatus.AUDIO_GENERATING,
    PipelineStage.GENERATE_MUSIC: MovieStatus.AUDIO_GENERATING,
    PipelineStage.ASSEMBLE_MOVIE: MovieStatus.ASSEMBLING,
    PipelineStage.GENERATE_COVER: MovieStatus.ASSEMBLING,
    PipelineStage.FINALIZE: MovieStatus.ASSEMBLING,
}
