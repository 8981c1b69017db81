# backend/skyprep/tasks/session_status.py
"""
Session lifecycle sweep.

Moves ``scheduled`` sessions to ``ongoing`` once they start and ``ongoing``
sessions to ``completed`` once they end.
"""

import logging
from typing import Any, Dict, Optional

from ..core.clock import Clock
from ..database import get_db_session
from ..services.session_lifecycle_service import SessionLifecycleService
from .celery_app import celery_app

logger = logging.getLogger(__name__)


def run_status_sweep(clock: Optional[Clock] = None) -> Dict[str, int]:
    """Run one sweep in its own database session."""
    with get_db_session() as db:
        result = SessionLifecycleService(db, clock=clock).advance_statuses()
    if result.started or result.completed:
        logger.info(
            f"Session sweep: {result.started} started, {result.completed} completed, "
            f"{result.skipped} skipped"
        )
    return result.to_dict()


@celery_app.task(name="sessions.advance_statuses", ignore_result=True)
def advance_session_statuses(*_: Any) -> Dict[str, int]:
    return run_status_sweep()
