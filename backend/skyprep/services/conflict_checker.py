# backend/skyprep/services/conflict_checker.py
"""
Conflict Checker Service for the SkyPrep session backend.

Decides whether a candidate interval overlaps an active session of the
teacher or the student. Only non-terminal, non-deleted sessions count, and
intervals are half-open, so a session ending at 11:15 does not block one
starting at 11:15.

The booking service calls this inside every write attempt; the calendar
version bump that follows is what makes the answer stick.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import List, Optional

import pytz
from sqlalchemy.orm import Session

from ..core.exceptions import SessionConflictException
from ..core.timezone_utils import ensure_utc, get_operating_timezone
from ..domain.intervals import overlaps
from ..models.session import TeachingSession
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)

TEACHER_SCOPE = "teacher"
STUDENT_SCOPE = "student"


@dataclass(frozen=True)
class SessionConflict:
    """First active session found overlapping a candidate interval."""

    scope: str
    participant_id: str
    session: TeachingSession

    def to_exception(self) -> SessionConflictException:
        if self.scope == TEACHER_SCOPE:
            message = "The teacher already has a session at this time"
        else:
            message = "The student already has a session at this time"
        return SessionConflictException(
            message,
            details={
                "scope": self.scope,
                "participant_id": self.participant_id,
                "conflicting_session_id": self.session.id,
                "conflicting_start_time": self.session.start_time.isoformat(),
                "conflicting_end_time": self.session.end_time.isoformat(),
            },
        )


class ConflictChecker(BaseService):
    """
    Service for checking session conflicts.

    Works entirely on the session table; slot listings shown earlier are
    never trusted.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictCheckerRepository] = None,
        tz: Optional[pytz.BaseTzInfo] = None,
    ):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
            tz: Operating time zone used to derive the session date
        """
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)
        self.tz = tz or get_operating_timezone()

    def session_date(self, start: datetime) -> date:
        return ensure_utc(start).astimezone(self.tz).date()

    @staticmethod
    def _first_overlap(
        sessions: List[TeachingSession], start: datetime, end: datetime
    ) -> Optional[TeachingSession]:
        for existing in sessions:
            if overlaps(start, end, existing.start_time, existing.end_time):
                return existing
        return None

    @BaseService.measure_operation("find_conflict")
    def find_conflict(
        self,
        start: datetime,
        end: datetime,
        *,
        teacher_id: Optional[str] = None,
        student_id: Optional[str] = None,
        exclude_session_id: Optional[str] = None,
    ) -> Optional[SessionConflict]:
        """
        Return the first conflicting session, teacher checked first.

        Args:
            start: Candidate start (aware)
            end: Candidate end (aware)
            teacher_id: Teacher to check, if any
            student_id: Student to check, if any (cohort sessions have none)
            exclude_session_id: Session being moved, ignored in the check

        Returns:
            SessionConflict or None when the interval is free for both
        """
        start_utc, end_utc = ensure_utc(start), ensure_utc(end)
        check_date = self.session_date(start_utc)

        if teacher_id:
            existing = self._first_overlap(
                self.repository.get_teacher_sessions_for_date(
                    teacher_id, check_date, exclude_session_id
                ),
                start_utc,
                end_utc,
            )
            if existing is not None:
                self.logger.info(
                    f"Teacher {teacher_id} conflict on {check_date}: session {existing.id}"
                )
                return SessionConflict(TEACHER_SCOPE, teacher_id, existing)

        if student_id:
            existing = self._first_overlap(
                self.repository.get_student_sessions_for_date(
                    student_id, check_date, exclude_session_id
                ),
                start_utc,
                end_utc,
            )
            if existing is not None:
                self.logger.info(
                    f"Student {student_id} conflict on {check_date}: session {existing.id}"
                )
                return SessionConflict(STUDENT_SCOPE, student_id, existing)

        return None

    def ensure_no_conflict(
        self,
        start: datetime,
        end: datetime,
        *,
        teacher_id: Optional[str] = None,
        student_id: Optional[str] = None,
        exclude_session_id: Optional[str] = None,
    ) -> None:
        """Raise SessionConflictException when the interval is taken."""
        conflict = self.find_conflict(
            start,
            end,
            teacher_id=teacher_id,
            student_id=student_id,
            exclude_session_id=exclude_session_id,
        )
        if conflict is not None:
            raise conflict.to_exception()

    def teacher_at_daily_cap(
        self,
        teacher_id: str,
        check_date: date,
        cap: int,
        exclude_session_id: Optional[str] = None,
    ) -> bool:
        return (
            self.repository.count_teacher_sessions_for_date(
                teacher_id, check_date, exclude_session_id
            )
            >= cap
        )
