# backend/skyprep/repositories/__init__.py
"""
Repository Pattern Implementation for the SkyPrep session backend.

This package provides the repository layer for data access,
separating scheduling rules from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with common operations
- RepositoryFactory: Factory for creating repository instances
- SessionRepository: Teaching sessions, history and reschedule rows
- ConflictCheckerRepository: Active sessions per participant and date
- ParticipantCalendarRepository: Version rows arbitrating concurrent writes
- EnrollmentRepository: Focus-One and cohort lookups
- HolidayRepository: Public holidays
- UserRepository: Active users with roles

Usage:
    from skyprep.repositories import RepositoryFactory

    repository = RepositoryFactory.create_conflict_checker_repository(db)
    sessions = repository.get_teacher_sessions_for_date(teacher_id, day)
"""

from .base_repository import BaseRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .enrollment_repository import EnrollmentRepository
from .factory import RepositoryFactory
from .holiday_repository import HolidayRepository
from .participant_calendar_repository import ParticipantCalendarRepository
from .session_repository import SessionRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "ConflictCheckerRepository",
    "EnrollmentRepository",
    "HolidayRepository",
    "ParticipantCalendarRepository",
    "RepositoryFactory",
    "SessionRepository",
    "UserRepository",
]
