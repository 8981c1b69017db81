"""Subject model; sessions may be tagged with the subject being taught."""

from sqlalchemy import Boolean, Column, String, Text
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(120), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<Subject {self.id}: {self.name}>"
