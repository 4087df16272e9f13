"""Celery job definitions."""

from movie_engine.jobs.pipeline_tasks import execute_movie_pipeline_task

__all__ = ["execute_movie_pipeline_task"]
