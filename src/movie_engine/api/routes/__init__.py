"""API route modules."""

from movie_engine.api.routes import health, movies, providers

__all__ = ["health", "movies", "providers"]
