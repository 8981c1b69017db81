# backend/skyprep/repositories/enrollment_repository.py
"""
Enrollment Repository for the SkyPrep session backend.

Loads Focus-One and cohort programs with their teacher/subject mappings and
resolves which single program a student is enrolled in.
"""

import logging
from typing import Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.enums import ProgramStatus
from ..core.exceptions import RepositoryException
from ..domain.program_reference import CohortRef, FocusOneRef, ProgramRef
from ..models.enrollment import Cohort, CohortMembership, FocusOne
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EnrollmentRepository(BaseRepository[FocusOne]):
    def __init__(self, db: Session):
        super().__init__(db, FocusOne)

    def get_focus_one(self, focus_one_id: str) -> Optional[FocusOne]:
        try:
            return cast(
                Optional[FocusOne],
                self.db.query(FocusOne)
                .options(selectinload(FocusOne.teacher_subjects))
                .filter(FocusOne.id == focus_one_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading Focus-One {focus_one_id}: {str(e)}")
            raise RepositoryException(f"Failed to load Focus-One: {str(e)}")

    def get_cohort(self, cohort_id: str) -> Optional[Cohort]:
        try:
            return cast(Optional[Cohort], self.db.query(Cohort).filter(Cohort.id == cohort_id).first())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading cohort {cohort_id}: {str(e)}")
            raise RepositoryException(f"Failed to load cohort: {str(e)}")

    def get_program_for_student(self, student_id: str) -> Optional[ProgramRef]:
        """
        The student's active enrollment as a tagged reference, or None.

        Raises:
            RepositoryException: the student holds both a Focus-One and a cohort seat
        """
        try:
            focus_one_id = (
                self.db.query(FocusOne.id)
                .filter(
                    FocusOne.student_id == student_id,
                    FocusOne.is_active.is_(True),
                    FocusOne.status == ProgramStatus.ACTIVE.value,
                )
                .order_by(FocusOne.created_at.desc(), FocusOne.id.desc())
                .limit(1)
                .scalar()
            )
            cohort_id = (
                self.db.query(CohortMembership.cohort_id)
                .filter(CohortMembership.student_id == student_id)
                .limit(1)
                .scalar()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error resolving program for student {student_id}: {str(e)}")
            raise RepositoryException(f"Failed to resolve program: {str(e)}")

        if focus_one_id and cohort_id:
            self.logger.error(
                "Student %s is enrolled in Focus-One %s and cohort %s",
                student_id,
                focus_one_id,
                cohort_id,
            )
            raise RepositoryException("Student is enrolled in more than one program")
        if focus_one_id:
            return FocusOneRef(focus_one_id)
        if cohort_id:
            return CohortRef(cohort_id)
        return None
