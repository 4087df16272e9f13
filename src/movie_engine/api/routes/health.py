"""Liveness and readiness probes."""

import redis
from fastapi import APIRouter, status
from pydantic import BaseModel

from movie_engine import __version__
from movie_engine.api.deps import SessionDep
from movie_engine.config import settings
from movie_engine.db.session import check_connection
from movie_engine.logging import get_logger
from movie_engine.services.providers import RUN_CAPABILITIES, ProviderRegistry

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Whether a newly created movie could actually run."""

    ready: bool
    database: bool
    broker: bool
    providers: bool
    missing_capabilities: list[str] = []


def _broker_ok() -> bool:
    # Pipelines still run in-process without a broker, so this only informs
    try:
        redis.from_url(settings.celery_broker_url, socket_connect_timeout=2).ping()
    except redis.RedisError as e:
        logger.warning("broker_health_check_failed", error=str(e))
        return False
    return True


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="The API process is up.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=__version__)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Database reachable and the required provider capabilities bound.",
)
async def readiness_check(session: SessionDep) -> ReadinessResponse:
    """Readiness: database, broker and provider bindings.

    ``ready`` ignores the broker because pipelines fall back to running in
    the API process when it is down.
    """
    database_ok = check_connection()
    missing: list[str] = []
    providers_ok = False
    if database_ok:
        validation = ProviderRegistry.from_session(session).validate(RUN_CAPABILITIES)
        providers_ok = validation.ok
        missing = [c.value for c in validation.missing]

    return ReadinessResponse(
        ready=database_ok and providers_ok,
        database=database_ok,
        broker=_broker_ok(),
        providers=providers_ok,
        missing_capabilities=missing,
    )
