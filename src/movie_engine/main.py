"""FastAPI application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from movie_engine import __version__
from movie_engine.api.routes import health, movies, providers
from movie_engine.db.session import check_connection
from movie_engine.errors import ConfigurationError
from movie_engine.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("application_starting", version=__version__)
    if check_connection():
        logger.info("database_connected")

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="Movie Engine",
    description="Prompt-to-movie generation runs with stage-level progress",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("configuration_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


app.include_router(health.router)
app.include_router(movies.router, prefix="/api/v1")
app.include_router(providers.router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root() -> dict[str, str]:
    return {"name": "Movie Engine", "version": __version__, "docs": "/docs"}
