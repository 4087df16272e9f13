"""Application services."""

from movie_engine.services.alerting import Alert, AlertingService, AlertSeverity
from movie_engine.services.orchestrator import PipelineOrchestrator
from movie_engine.services.poller import PollResult, PollStatus, TaskPoller
from movie_engine.services.progress import ProgressLedger, RunView
from movie_engine.services.providers import ProviderRegistry, ProviderSet, ProviderValidation
from movie_engine.services.storage import StorageService, StoredAsset

__all__ = [
    "Alert",
    "AlertingService",
    "AlertSeverity",
    "PipelineOrchestrator",
    "PollResult",
    "PollStatus",
    "ProgressLedger",
    "ProviderRegistry",
    "ProviderSet",
    "ProviderValidation",
    "RunView",
    "StorageService",
    "StoredAsset",
    "TaskPoller",
]
