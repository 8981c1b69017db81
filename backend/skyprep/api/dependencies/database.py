# backend/skyprep/api/dependencies/database.py
"""
Database session dependency for the session routes.

Tests override this callable to bind requests to their own engine.
"""

from typing import Generator

from sqlalchemy.orm import Session

from ...database import get_db as _request_scoped_db


def get_db() -> Generator[Session, None, None]:
    """One session per request; commits when the handler returns cleanly."""
    yield from _request_scoped_db()
