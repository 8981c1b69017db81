"""Builders for users, enrollments and sessions used across the test suite."""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from skyprep.core.enums import RoleName
from skyprep.core.timezone_utils import combine_local
from skyprep.domain.session_state import SessionStatus
from skyprep.models.enrollment import Cohort, CohortMembership, FocusOne, FocusOneTeacherSubject
from skyprep.models.holiday import PublicHoliday
from skyprep.models.rbac import Role
from skyprep.models.session import TeachingSession
from skyprep.models.subject import Subject
from skyprep.models.user import User


def at(day: date, hhmm: str) -> datetime:
    """Aware datetime for a wall-clock time in the operating time zone."""
    hours, minutes = (int(part) for part in hhmm.split(":"))
    return combine_local(day, time(hours, minutes))


def interval(day: date, start: str, minutes: int = 75) -> Tuple[datetime, datetime]:
    begin = at(day, start)
    return begin, begin + timedelta(minutes=minutes)


def get_role(db: Session, name: RoleName) -> Role:
    role = db.query(Role).filter(Role.name == name.value).first()
    if role is None:
        role = Role(name=name.value)
        db.add(role)
        db.flush()
    return role


def make_user(db: Session, email: str, full_name: str, *roles: RoleName) -> User:
    user = User(email=email, full_name=full_name, is_active=True)
    user.roles = [get_role(db, role) for role in roles]
    db.add(user)
    db.commit()
    return user


def make_subject(db: Session, name: str) -> Subject:
    subject = Subject(name=name, is_active=True)
    db.add(subject)
    db.commit()
    return subject


def make_focus_one(
    db: Session, student: User, mappings: Iterable[Tuple[User, Subject]], status: str = "active"
) -> FocusOne:
    focus_one = FocusOne(student_id=student.id, status=status, is_active=True)
    for position, (teacher, subject) in enumerate(mappings):
        focus_one.teacher_subjects.append(
            FocusOneTeacherSubject(teacher_id=teacher.id, subject_id=subject.id, position=position)
        )
    db.add(focus_one)
    db.commit()
    return focus_one


def make_cohort(db: Session, name: str, students: Iterable[User] = ()) -> Cohort:
    cohort = Cohort(name=name, status="active", is_active=True)
    for member in students:
        cohort.memberships.append(CohortMembership(student_id=member.id))
    db.add(cohort)
    db.commit()
    return cohort


def make_holiday(db: Session, day: date, name: str = "Public Holiday") -> PublicHoliday:
    holiday = PublicHoliday(holiday_date=day, name=name, is_active=True)
    db.add(holiday)
    db.commit()
    return holiday


def make_session(
    db: Session,
    *,
    teacher: User,
    start: datetime,
    end: datetime,
    student: Optional[User] = None,
    focus_one: Optional[FocusOne] = None,
    cohort: Optional[Cohort] = None,
    subject: Optional[Subject] = None,
    status: SessionStatus = SessionStatus.SCHEDULED,
    deleted_at: Optional[datetime] = None,
) -> TeachingSession:
    """Insert a session row directly, bypassing the booking rules."""
    session = TeachingSession(
        title="Seeded session",
        start_time=start,
        end_time=end,
        session_date=start.date(),
        teacher_id=teacher.id,
        student_id=student.id if student else None,
        subject_id=subject.id if subject else None,
        focus_one_id=focus_one.id if focus_one else None,
        cohort_id=cohort.id if cohort else None,
        status=status.value,
        deleted_at=deleted_at,
    )
    db.add(session)
    db.commit()
    return session
