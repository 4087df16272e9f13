"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from movie_engine.db.session import get_session
from movie_engine.services.progress import ProgressLedger

# Database session dependency
SessionDep = Annotated[Session, Depends(get_session)]


def get_progress_ledger() -> ProgressLedger:
    """Get the progress ledger (reads use their own short sessions)."""
    return ProgressLedger()


LedgerDep = Annotated[ProgressLedger, Depends(get_progress_ledger)]
