"""
Database models for the SkyPrep session backend.

Importing this package registers every table on ``Base.metadata``:
- Users and roles (read-only here)
- Subjects and public holidays
- Enrollments (Focus-One, cohorts)
- Teaching sessions with history and reschedule audit
- Participant calendar version rows
"""

from .enrollment import Cohort, CohortMembership, FocusOne, FocusOneTeacherSubject
from .holiday import PublicHoliday
from .participant_calendar import ParticipantCalendar
from .rbac import Role, UserRole
from .session import TeachingSession
from .session_history import SessionHistory, SessionReschedule
from .subject import Subject
from .user import User

__all__ = [
    "Cohort",
    "CohortMembership",
    "FocusOne",
    "FocusOneTeacherSubject",
    "ParticipantCalendar",
    "PublicHoliday",
    "Role",
    "SessionHistory",
    "SessionReschedule",
    "Subject",
    "TeachingSession",
    "User",
    "UserRole",
]
