"""Database layer."""

from movie_engine.db.models import (
    Base,
    MovieModel,
    MovieProgressModel,
    MovieSceneModel,
    ProviderBindingModel,
)
from movie_engine.db.session import SessionFactory, check_connection, get_session, get_session_context

__all__ = [
    "Base",
    "get_session",
    "get_session_context",
    "SessionFactory",
    "check_connection",
    # Models
    "MovieModel",
    "MovieProgressModel",
    "MovieSceneModel",
    "ProviderBindingModel",
]
