# backend/skyprep/core/enums.py
"""
Core enums for the SkyPrep session backend.

Session statuses and actions live with the state machine in
``skyprep.domain.session_state``.
"""

from enum import Enum


class RoleName(str, Enum):
    """
    Standard role names.

    Roles are assigned upstream; this service only reads them.
    """

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


PRIVILEGED_ROLES = frozenset({RoleName.SUPER_ADMIN, RoleName.ADMIN})


class MeetingPlatform(str, Enum):
    """Video platforms a session link may point at."""

    JITSI_MEET = "jitsi-meet"


class ProgramStatus(str, Enum):
    """Lifecycle of a Focus-One or cohort enrollment."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
