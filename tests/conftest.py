"""Pytest configuration and fixtures."""

import os
from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_BROKER_URL"] = "redis://localhost:6379/1"
os.environ["CELERY_RESULT_BACKEND"] = "redis://localhost:6379/1"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["INTERNAL_API_TOKEN"] = "test-internal-token"
os.environ["ENCRYPTION_MASTER_KEY"] = "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY="
os.environ["ALERT_DISCORD_WEBHOOK_URL"] = ""

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from movie_engine.db.models import Base, MovieModel  # noqa: E402


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite database shared across connections."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_maker(db_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session_factory(session_maker: sessionmaker[Session]) -> Callable[[], Any]:
    """Commit-on-exit session context, like ``get_session_context``."""

    @contextmanager
    def factory() -> Iterator[Session]:
        session = session_maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


@pytest.fixture
def make_movie(session_factory: Callable[[], Any]) -> Callable[..., UUID]:
    """Insert a movie row and return its id."""

    def _make(**fields: Any) -> UUID:
        values: dict[str, Any] = {
            "user_prompt": "A lighthouse keeper finds a message in a bottle",
            "status": "queued",
            "progress": 0,
            "options": {},
        }
        values.update(fields)
        with session_factory() as session:
            movie = MovieModel(**values)
            session.add(movie)
            session.flush()
            return movie.id

    return _make


class FakeClock:
    """Deterministic clock for ledger writes."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def sleep() -> Callable[[float], Any]:
    """Sleep replacement so poll loops run instantly."""
    return no_sleep


@pytest.fixture
def test_client(
    session_maker: sessionmaker[Session], session_factory: Callable[[], Any]
) -> Generator[TestClient, None, None]:
    """Test client for the FastAPI app, bound to the in-memory database."""
    from movie_engine.api.deps import get_progress_ledger
    from movie_engine.db.session import get_session
    from movie_engine.main import app
    from movie_engine.services.progress import ProgressLedger

    def override_session() -> Iterator[Session]:
        session = session_maker()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_progress_ledger] = lambda: ProgressLedger(session_factory)
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
