"""Exception hierarchy for the generation pipeline."""


class MovieEngineError(Exception):
    """Base class for pipeline errors."""

    pass


class ConfigurationError(MovieEngineError):
    """Missing or invalid provider configuration."""

    pass


class ProviderNotConfiguredError(ConfigurationError):
    """No binding for a capability resolves to a usable provider."""

    def __init__(self, capability: str, reason: str | None = None) -> None:
        self.capability = capability
        message = f"No provider configured for capability '{capability}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ProviderError(MovieEngineError):
    """An external provider rejected a job or reported it failed.

    The message is the provider's own text, unmodified.
    """

    def __init__(
        self, message: str, provider: str | None = None, status_code: int | None = None
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class PipelineStageError(MovieEngineError):
    """A stage failed and the run was halted."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(f"{stage}: {message}")


class SceneGenerationError(MovieEngineError):
    """A scene's video job reached a terminal failure."""

    def __init__(self, scene_number: int, message: str) -> None:
        self.scene_number = scene_number
        self.message = message
        super().__init__(f"Scene {scene_number} failed: {message}")


class JobsPendingError(MovieEngineError):
    """Provider jobs were still running when the re-poll budget ran out.

    The jobs may still finish; the failure is recorded as recoverable.
    """

    pass


class ScenesPendingError(JobsPendingError):
    """Scenes were still running when the re-poll budget ran out."""

    def __init__(self, pending_scenes: list[int]) -> None:
        self.pending_scenes = pending_scenes
        super().__init__(
            "Jobs still pending for scenes "
            + ", ".join(str(n) for n in pending_scenes)
        )


class RunNotFoundError(MovieEngineError):
    """No movie row exists for the given id."""

    pass


class RunNotQueuedError(MovieEngineError):
    """The run is not in the queued state and cannot be started."""

    pass


class TriggerError(MovieEngineError):
    """An execution trigger could not hand the run off."""

    pass
