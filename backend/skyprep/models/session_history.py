# backend/skyprep/models/session_history.py
"""
Audit models for sessions.

SessionHistory: one row per lifecycle event (transition, reschedule,
soft delete, restore).
SessionReschedule: the interval a session had before each reschedule.
"""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import UTCDateTime


class SessionHistory(Base):
    __tablename__ = "session_history"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id = Column(
        String(26), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Position within the session's history, 0-based
    sequence = Column(Integer, nullable=False, default=0)
    action = Column(String(20), nullable=False)
    # Null when the lifecycle sweep performed the change
    performed_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    performed_at = Column(UTCDateTime, nullable=False)
    previous_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    changes = Column(JSON, nullable=True)

    session = relationship("TeachingSession", back_populates="history")

    def __repr__(self) -> str:
        return (
            f"<SessionHistory {self.session_id}: {self.action} "
            f"{self.previous_status}->{self.new_status}>"
        )


class SessionReschedule(Base):
    __tablename__ = "session_reschedules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    session_id = Column(
        String(26), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    previous_start_time = Column(UTCDateTime, nullable=False)
    previous_end_time = Column(UTCDateTime, nullable=False)
    new_start_time = Column(UTCDateTime, nullable=False)
    new_end_time = Column(UTCDateTime, nullable=False)
    rescheduled_by_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    rescheduled_at = Column(UTCDateTime, nullable=False)

    session = relationship("TeachingSession", back_populates="reschedules")
