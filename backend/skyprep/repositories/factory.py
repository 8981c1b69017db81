# backend/skyprep/repositories/factory.py
"""
Repository Factory for the SkyPrep session backend.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .conflict_checker_repository import ConflictCheckerRepository
    from .enrollment_repository import EnrollmentRepository
    from .holiday_repository import HolidayRepository
    from .participant_calendar_repository import ParticipantCalendarRepository
    from .session_repository import SessionRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services and tests can swap
    implementations in one place.
    """

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository:
        """
        Create a generic base repository for any model.

        Args:
            db: Database session
            model: SQLAlchemy model class

        Returns:
            BaseRepository instance
        """
        return BaseRepository(db, model)

    @staticmethod
    def create_session_repository(db: Session) -> "SessionRepository":
        """Create repository for teaching session records."""
        from .session_repository import SessionRepository

        return SessionRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking queries."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_participant_calendar_repository(db: Session) -> "ParticipantCalendarRepository":
        """Create repository for per participant/date version rows."""
        from .participant_calendar_repository import ParticipantCalendarRepository

        return ParticipantCalendarRepository(db)

    @staticmethod
    def create_enrollment_repository(db: Session) -> "EnrollmentRepository":
        from .enrollment_repository import EnrollmentRepository

        return EnrollmentRepository(db)

    @staticmethod
    def create_holiday_repository(db: Session) -> "HolidayRepository":
        from .holiday_repository import HolidayRepository

        return HolidayRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)
