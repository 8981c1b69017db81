# backend/skyprep/models/enrollment.py
"""
Enrollment models.

A student is enrolled in either a Focus-One program (one student, a list
of teacher/subject pairings) or a cohort (group program), never both.

Classes:
    FocusOne: One-to-one program for a single student
    FocusOneTeacherSubject: Ordered teacher/subject pairing inside a Focus-One
    Cohort: Group program
    CohortMembership: Student membership in a cohort
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import ProgramStatus
from ..database import Base
from ..domain.program_reference import CohortRef, FocusOneRef
from .types import UTCDateTime

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ProgramStatus)


class FocusOne(Base):
    __tablename__ = "focus_ones"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ProgramStatus.ACTIVE.value)
    is_active = Column(Boolean, nullable=False, default=True)
    started_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, server_default=func.now())

    student = relationship("User", foreign_keys=[student_id])
    teacher_subjects = relationship(
        "FocusOneTeacherSubject",
        back_populates="focus_one",
        order_by="FocusOneTeacherSubject.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_focus_ones_status"),
    )

    @property
    def ref(self) -> FocusOneRef:
        return FocusOneRef(self.id)

    @property
    def accepts_sessions(self) -> bool:
        return bool(self.is_active) and self.status == ProgramStatus.ACTIVE.value

    def teacher_ids_for_subject(self, subject_id: str) -> list[str]:
        """Teachers mapped to ``subject_id`` in mapping order, without duplicates."""
        seen: list[str] = []
        for mapping in self.teacher_subjects:
            if mapping.subject_id == subject_id and mapping.teacher_id not in seen:
                seen.append(mapping.teacher_id)
        return seen

    def has_teacher(self, teacher_id: str) -> bool:
        return any(m.teacher_id == teacher_id for m in self.teacher_subjects)

    def __repr__(self) -> str:
        return f"<FocusOne {self.id}: student={self.student_id}, status={self.status}>"


class FocusOneTeacherSubject(Base):
    __tablename__ = "focus_one_teacher_subjects"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    focus_one_id = Column(
        String(26), ForeignKey("focus_ones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    teacher_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    subject_id = Column(String(26), ForeignKey("subjects.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    focus_one = relationship("FocusOne", back_populates="teacher_subjects")

    __table_args__ = (
        UniqueConstraint(
            "focus_one_id", "teacher_id", "subject_id", name="uq_focus_one_teacher_subject"
        ),
    )


class Cohort(Base):
    __tablename__ = "cohorts"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=ProgramStatus.ACTIVE.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now())

    memberships = relationship(
        "CohortMembership", back_populates="cohort", cascade="all, delete-orphan"
    )

    __table_args__ = (CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_cohorts_status"),)

    @property
    def ref(self) -> CohortRef:
        return CohortRef(self.id)

    @property
    def accepts_sessions(self) -> bool:
        return bool(self.is_active) and self.status == ProgramStatus.ACTIVE.value


class CohortMembership(Base):
    __tablename__ = "cohort_memberships"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    cohort_id = Column(
        String(26), ForeignKey("cohorts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # A student belongs to at most one cohort
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, unique=True)
    joined_at = Column(UTCDateTime, server_default=func.now())

    cohort = relationship("Cohort", back_populates="memberships")
