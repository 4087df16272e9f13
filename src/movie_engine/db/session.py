"""Engine and session factories."""

from collections.abc import Callable, Generator
from contextlib import AbstractContextManager, contextmanager
from typing import Any

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from movie_engine.config import settings
from movie_engine.logging import get_logger

logger = get_logger(__name__)

# Anything that opens a commit-on-exit session; services take one so tests
# can point them at an in-memory database.
SessionFactory = Callable[[], AbstractContextManager[Session]]


def build_engine(url: str) -> Engine:
    kwargs: dict[str, Any] = {}
    if url.startswith("sqlite"):
        # The direct trigger runs pipelines on their own threads
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    return create_engine(url, **kwargs)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_session() -> Generator[Session, None, None]:
    """Request-scoped session for FastAPI; routes commit explicitly."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def get_session_context() -> Generator[Session, None, None]:
    """Session that commits on success and rolls back on error.

    Every ledger write and stage transition uses its own short session so a
    failure in one stage never leaves an earlier write uncommitted.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_connection() -> bool:
    """Return whether the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("database_unreachable", error=str(e))
        return False
    return True
