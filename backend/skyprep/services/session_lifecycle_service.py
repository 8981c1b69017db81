# backend/skyprep/services/session_lifecycle_service.py
"""
Time-driven session transitions.

``scheduled`` sessions whose start has passed become ``ongoing``;
``ongoing`` sessions whose end has passed become ``completed``. Driven by
the Celery beat task ``sessions.advance_statuses``. Each session is
committed on its own so one stale row does not hold back the rest.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.clock import Clock, SystemClock
from ..core.timezone_utils import ensure_utc
from ..domain.session_state import SessionAction, TransitionRejected, transition
from ..models.session import TeachingSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class _SessionChanged(Exception):
    pass


@dataclass
class SweepResult:
    started: int = 0
    completed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return {"started": self.started, "completed": self.completed, "skipped": self.skipped}


class SessionLifecycleService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None, batch_size: int = 500):
        super().__init__(db)
        self.clock: Clock = clock or SystemClock()
        self.batch_size = batch_size
        self.session_repository = RepositoryFactory.create_session_repository(db)

    def _apply(self, session: TeachingSession, action: SessionAction, now: datetime) -> bool:
        """Apply one time-driven transition in its own transaction."""
        result = transition(session.status, action)
        if isinstance(result, TransitionRejected):
            self.logger.info(f"Skipping session {session.id}: {result.reason}")
            return False
        try:
            with self.transaction():
                session.status = result.new.value
                if action == SessionAction.START:
                    session.started_at = now
                else:
                    session.completed_at = now
                self.session_repository.add_history(
                    session,
                    result.history_action,
                    performed_by_id=None,
                    performed_at=now,
                    previous_status=result.previous.value if result.previous else None,
                    new_status=result.new.value,
                )
                try:
                    self.session_repository.flush()
                except StaleDataError as exc:
                    raise _SessionChanged(session.id) from exc
        except _SessionChanged:
            # A participant changed the session between the query and the update
            self.logger.info(f"Session {session.id} changed concurrently; will retry next sweep")
            return False

        prometheus_metrics.inc_session_transition(result.history_action.value)
        return True

    @BaseService.measure_operation("advance_statuses")
    def advance_statuses(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Start sessions whose start time passed and complete those whose end passed.

        A session that is already over when first swept goes through
        ``ongoing`` to ``completed`` in the same run.
        """
        current = ensure_utc(now) if now is not None else ensure_utc(self.clock.now())
        result = SweepResult()

        for session in self.session_repository.get_due_to_start(current, self.batch_size):
            if self._apply(session, SessionAction.START, current):
                result.started += 1
            else:
                result.skipped += 1

        for session in self.session_repository.get_due_to_complete(current, self.batch_size):
            if self._apply(session, SessionAction.COMPLETE, current):
                result.completed += 1
            else:
                result.skipped += 1

        self.log_operation("advance_statuses", **result.to_dict())
        return result
