# backend/skyprep/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the SkyPrep session backend.

Queries the session table for the active (non-terminal, not soft-deleted)
sessions of one participant on one date. A session never spans dates, so
filtering on ``session_date`` finds every session that can overlap a
candidate interval on that date.
"""

from datetime import date
import logging
from typing import List, Optional, cast

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..models.session import ACTIVE_STATUS_VALUES, TeachingSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[TeachingSession]):
    """Read-only queries behind overlap detection, slot listing and daily caps."""

    def __init__(self, db: Session):
        """Initialize with TeachingSession model as primary."""
        super().__init__(db, TeachingSession)
        self.logger = logging.getLogger(__name__)

    def _active_on_date(
        self, check_date: date, exclude_session_id: Optional[str] = None
    ) -> Query:
        query = self.db.query(TeachingSession).filter(
            TeachingSession.session_date == check_date,
            TeachingSession.status.in_(ACTIVE_STATUS_VALUES),
            TeachingSession.deleted_at.is_(None),
        )
        if exclude_session_id:
            query = query.filter(TeachingSession.id != exclude_session_id)
        return query

    def get_teacher_sessions_for_date(
        self, teacher_id: str, check_date: date, exclude_session_id: Optional[str] = None
    ) -> List[TeachingSession]:
        """
        Active sessions of a teacher on a date, ordered by start time.

        Args:
            teacher_id: The teacher to check
            check_date: Operating-timezone date
            exclude_session_id: Optional session to leave out (reschedule)
        """
        try:
            return cast(
                List[TeachingSession],
                self._active_on_date(check_date, exclude_session_id)
                .filter(TeachingSession.teacher_id == teacher_id)
                .order_by(TeachingSession.start_time)
                .all(),
            )
        except Exception as e:
            self.logger.error(f"Error getting teacher sessions for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get teacher sessions: {str(e)}")

    def get_student_sessions_for_date(
        self, student_id: str, check_date: date, exclude_session_id: Optional[str] = None
    ) -> List[TeachingSession]:
        """Active sessions of a student on a date, ordered by start time."""
        try:
            return cast(
                List[TeachingSession],
                self._active_on_date(check_date, exclude_session_id)
                .filter(TeachingSession.student_id == student_id)
                .order_by(TeachingSession.start_time)
                .all(),
            )
        except Exception as e:
            self.logger.error(f"Error getting student sessions for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get student sessions: {str(e)}")

    def count_teacher_sessions_for_date(
        self, teacher_id: str, check_date: date, exclude_session_id: Optional[str] = None
    ) -> int:
        try:
            return int(
                self._active_on_date(check_date, exclude_session_id)
                .filter(TeachingSession.teacher_id == teacher_id)
                .with_entities(func.count(TeachingSession.id))
                .scalar()
                or 0
            )
        except Exception as e:
            self.logger.error(f"Error counting teacher sessions: {str(e)}")
            raise RepositoryException(f"Failed to count teacher sessions: {str(e)}")

    def count_student_sessions_for_date(
        self,
        student_id: str,
        check_date: date,
        subject_id: Optional[str] = None,
        exclude_session_id: Optional[str] = None,
    ) -> int:
        """Active sessions of a student on a date, optionally for one subject only."""
        try:
            query = self._active_on_date(check_date, exclude_session_id).filter(
                TeachingSession.student_id == student_id
            )
            if subject_id:
                query = query.filter(TeachingSession.subject_id == subject_id)
            return int(query.with_entities(func.count(TeachingSession.id)).scalar() or 0)
        except Exception as e:
            self.logger.error(f"Error counting student sessions: {str(e)}")
            raise RepositoryException(f"Failed to count student sessions: {str(e)}")
