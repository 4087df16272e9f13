"""Celery application for pipeline runs.

Start with ``celery -A movie_engine.worker worker -Q pipeline``.
"""

from typing import Any

from celery import Celery
from celery.signals import worker_process_init

from movie_engine.config import settings
from movie_engine.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

celery_app = Celery(
    "movie_engine",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # A redelivered task finds its run no longer queued and exits
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Runs last minutes to hours; never prefetch a second one
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.worker_concurrency,
    result_expires=86400,
    task_default_queue="pipeline",
    task_routes={"pipeline.*": {"queue": "pipeline"}},
)

celery_app.autodiscover_tasks(["movie_engine.jobs"])


@worker_process_init.connect
def dispose_inherited_connections(**_kwargs: Any) -> None:
    """Drop pooled connections copied from the parent by fork."""
    from movie_engine.db.session import engine

    engine.dispose(close=False)
    logger.debug("worker_process_initialized")
