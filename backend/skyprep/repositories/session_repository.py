# backend/skyprep/repositories/session_repository.py
"""
Session Repository for the SkyPrep session backend.

Point lookups, audit rows and the queries behind the lifecycle sweep.
Inserts and updates flush without catching IntegrityError: the booking
service needs the original error to tell an overlap constraint from
write contention.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..domain.session_state import HistoryAction, SessionStatus
from ..models.session import TeachingSession
from ..models.session_history import SessionHistory, SessionReschedule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SessionRepository(BaseRepository[TeachingSession]):
    def __init__(self, db: Session):
        super().__init__(db, TeachingSession)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            selectinload(TeachingSession.history),
            selectinload(TeachingSession.reschedules),
        )

    def get_session(
        self, session_id: str, *, include_deleted: bool = False, fresh: bool = False
    ) -> Optional[TeachingSession]:
        """
        Load a session by id.

        Args:
            session_id: Session ULID
            include_deleted: Also return soft-deleted sessions
            fresh: Overwrite any identity-map copy with the stored row
        """
        try:
            query = self._apply_eager_loading(
                self.db.query(TeachingSession).filter(TeachingSession.id == session_id)
            )
            if not include_deleted:
                query = query.filter(TeachingSession.deleted_at.is_(None))
            if fresh:
                query = query.populate_existing()
            return cast(Optional[TeachingSession], query.first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to load session: {str(e)}")

    def add_session(self, session: TeachingSession) -> TeachingSession:
        """Stage a new session; the caller flushes."""
        self.db.add(session)
        return session

    def flush(self) -> None:
        """Flush pending changes; IntegrityError / StaleDataError propagate."""
        self.db.flush()

    def add_history(
        self,
        session: TeachingSession,
        action: HistoryAction,
        *,
        performed_by_id: Optional[str],
        performed_at: datetime,
        previous_status: Optional[str] = None,
        new_status: Optional[str] = None,
        notes: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> SessionHistory:
        entry = SessionHistory(
            sequence=len(session.history),
            action=action.value,
            performed_by_id=performed_by_id,
            performed_at=performed_at,
            previous_status=previous_status,
            new_status=new_status,
            notes=notes,
            changes=changes or None,
        )
        session.history.append(entry)
        return entry

    def add_reschedule(
        self,
        session: TeachingSession,
        *,
        previous_start: datetime,
        previous_end: datetime,
        rescheduled_by_id: str,
        rescheduled_at: datetime,
    ) -> SessionReschedule:
        entry = SessionReschedule(
            previous_start_time=previous_start,
            previous_end_time=previous_end,
            new_start_time=session.start_time,
            new_end_time=session.end_time,
            rescheduled_by_id=rescheduled_by_id,
            rescheduled_at=rescheduled_at,
        )
        session.reschedules.append(entry)
        return entry

    # Lifecycle sweep

    def get_due_to_start(self, now: datetime, limit: int = 500) -> List[TeachingSession]:
        """Scheduled sessions whose start time has passed."""
        try:
            return cast(
                List[TeachingSession],
                self.db.query(TeachingSession)
                .filter(
                    TeachingSession.status == SessionStatus.SCHEDULED.value,
                    TeachingSession.deleted_at.is_(None),
                    TeachingSession.start_time <= now,
                )
                .order_by(TeachingSession.start_time)
                .limit(limit)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading sessions due to start: {str(e)}")
            raise RepositoryException(f"Failed to load sessions due to start: {str(e)}")

    def get_due_to_complete(self, now: datetime, limit: int = 500) -> List[TeachingSession]:
        """Ongoing sessions whose end time has passed."""
        try:
            return cast(
                List[TeachingSession],
                self.db.query(TeachingSession)
                .filter(
                    TeachingSession.status == SessionStatus.ONGOING.value,
                    TeachingSession.deleted_at.is_(None),
                    TeachingSession.end_time <= now,
                )
                .order_by(TeachingSession.end_time)
                .limit(limit)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading sessions due to complete: {str(e)}")
            raise RepositoryException(f"Failed to load sessions due to complete: {str(e)}")
