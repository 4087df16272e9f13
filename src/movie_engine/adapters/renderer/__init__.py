"""Movie rendering adapters."""

from movie_engine.adapters.renderer.base import (
    QUALITY_DIMENSIONS,
    RenderClip,
    RendererProvider,
    RenderRequest,
)
from movie_engine.adapters.renderer.creatomate import CreatomateRenderer
from movie_engine.adapters.renderer.stub import StubRendererProvider

__all__ = [
    "QUALITY_DIMENSIONS",
    "CreatomateRenderer",
    "RenderClip",
    "RenderRequest",
    "RendererProvider",
    "StubRendererProvider",
]
