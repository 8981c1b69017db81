# backend/skyprep/models/session.py
"""
Teaching session model.

A session is the booking record between a teacher and a student (or a
cohort). It stores its own interval, participants and audit trail, so it
never depends on slot listings that were shown before it was booked.

Times are UTC timestamps; ``session_date`` is the date in the operating
time zone and is what participant/date range queries filter on.
"""

import logging

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import MeetingPlatform
from ..database import Base
from ..domain.program_reference import ProgramRef, program_from_columns, program_to_columns
from ..domain.session_state import NON_TERMINAL_STATUSES, SessionStatus
from .types import UTCDateTime

logger = logging.getLogger(__name__)

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in SessionStatus)
_PLATFORM_VALUES = ", ".join(f"'{p.value}'" for p in MeetingPlatform)
ACTIVE_STATUS_VALUES = tuple(s.value for s in NON_TERMINAL_STATUSES)


class TeachingSession(Base):
    """
    Booking record for one teaching session.

    Exactly one of ``focus_one_id`` / ``cohort_id`` is set; use ``program``
    to read it as a tagged reference.
    """

    __tablename__ = "sessions"

    # Primary key
    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Interval
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    session_date = Column(Date, nullable=False, index=True)

    # Participants
    teacher_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)
    student_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)
    subject_id = Column(String(26), ForeignKey("subjects.id"), nullable=True)

    # Program reference (mutually exclusive)
    focus_one_id = Column(String(26), ForeignKey("focus_ones.id"), nullable=True, index=True)
    cohort_id = Column(String(26), ForeignKey("cohorts.id"), nullable=True, index=True)

    status = Column(String(20), nullable=False, default=SessionStatus.REQUESTED.value, index=True)

    # Meeting
    meeting_link = Column(String(500), nullable=True)
    meeting_platform = Column(String(30), nullable=True)

    # Audit trail
    created_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    requested_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    requested_at = Column(UTCDateTime, nullable=True)
    accepted_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    accepted_at = Column(UTCDateTime, nullable=True)
    rejected_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    rejected_at = Column(UTCDateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    started_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)

    # Soft delete (independent of status)
    deleted_at = Column(UTCDateTime, nullable=True, index=True)
    deleted_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)

    # Optimistic lock; concurrent updates of the same row raise StaleDataError
    lock_version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    teacher = relationship("User", foreign_keys=[teacher_id])
    student = relationship("User", foreign_keys=[student_id])
    subject = relationship("Subject")
    history = relationship(
        "SessionHistory",
        back_populates="session",
        order_by="SessionHistory.sequence",
        cascade="all, delete-orphan",
    )
    reschedules = relationship(
        "SessionReschedule",
        back_populates="session",
        order_by="SessionReschedule.rescheduled_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_sessions_status"),
        CheckConstraint(
            f"meeting_platform IS NULL OR meeting_platform IN ({_PLATFORM_VALUES})",
            name="ck_sessions_meeting_platform",
        ),
        CheckConstraint("end_time > start_time", name="ck_sessions_time_order"),
        CheckConstraint(
            "(focus_one_id IS NOT NULL AND cohort_id IS NULL) "
            "OR (focus_one_id IS NULL AND cohort_id IS NOT NULL)",
            name="ck_sessions_single_program",
        ),
        Index("ix_sessions_teacher_date", "teacher_id", "session_date"),
        Index("ix_sessions_student_date", "student_id", "session_date"),
    )

    __mapper_args__ = {"version_id_col": lock_version}

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<TeachingSession {self.id}: teacher={self.teacher_id}, "
            f"student={self.student_id}, {self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def program(self) -> ProgramRef:
        return program_from_columns(self.focus_one_id, self.cohort_id)

    @program.setter
    def program(self, value: ProgramRef) -> None:
        columns = program_to_columns(value)
        self.focus_one_id = columns["focus_one_id"]
        self.cohort_id = columns["cohort_id"]

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def participant_ids(self) -> list[str]:
        return [pid for pid in (self.teacher_id, self.student_id) if pid]
