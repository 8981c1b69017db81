"""
Per participant, per date version counter.

Every write that adds or moves an active session bumps the counter of each
participant's calendar row with ``WHERE version = :expected``. Two writers
that both passed the overlap check cannot both bump the same row, so the
loser rolls back and re-checks.
"""

from sqlalchemy import Column, Date, Integer, String
from sqlalchemy.sql import func

from ..database import Base
from .types import UTCDateTime


class ParticipantCalendar(Base):
    __tablename__ = "participant_calendars"

    participant_id = Column(String(26), primary_key=True)
    calendar_date = Column(Date, primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<ParticipantCalendar {self.participant_id} {self.calendar_date} v{self.version}>"
