"""Public holidays; no session may be booked on an active holiday date."""

from sqlalchemy import Boolean, Column, Date, String
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    holiday_date = Column(Date, nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<PublicHoliday {self.holiday_date}: {self.name}>"
