# backend/tests/conftest.py
"""
Pytest configuration for the SkyPrep session backend.

Environment is pinned BEFORE any skyprep import so the module-level
settings object never sees a developer's .env database. Every test gets a
fresh in-memory SQLite database shared through a StaticPool.
"""

import os

# CRITICAL: Set testing environment BEFORE any skyprep imports!
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPERATING_TIMEZONE"] = "Asia/Kolkata"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ.pop("RESEND_API_KEY", None)

# CRITICAL: Mock Resend API globally to prevent real emails in ANY test
import unittest.mock

global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}

from datetime import date, time
from typing import Generator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from skyprep import models  # noqa: F401  registers every table
from skyprep.core.clock import FixedClock
from skyprep.core.config import settings
from skyprep.core.enums import RoleName
from skyprep.core.timezone_utils import combine_local
from skyprep.database import Base, build_engine
from skyprep.models.enrollment import FocusOne
from skyprep.models.subject import Subject
from skyprep.models.user import User
from skyprep.services.session_booking_service import SessionBookingService
from tests.utils.session_builders import make_focus_one, make_subject, make_user

settings.is_testing = True

# Monday; the week after holds the documented scenario dates
NOW_DATE = date(2024, 6, 3)
SCENARIO_MONDAY = date(2024, 6, 10)


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    """Monday 2024-06-03 08:00 in the operating time zone."""
    return FixedClock(combine_local(NOW_DATE, time(8, 0)))


@pytest.fixture
def student(db: Session) -> User:
    return make_user(db, "asha.student@example.com", "Asha Rao", RoleName.STUDENT)


@pytest.fixture
def other_student(db: Session) -> User:
    return make_user(db, "kiran.student@example.com", "Kiran Das", RoleName.STUDENT)


@pytest.fixture
def teacher(db: Session) -> User:
    return make_user(db, "meera.teacher@example.com", "Meera Iyer", RoleName.TEACHER)


@pytest.fixture
def second_teacher(db: Session) -> User:
    return make_user(db, "vikram.teacher@example.com", "Vikram Shah", RoleName.TEACHER)


@pytest.fixture
def admin(db: Session) -> User:
    return make_user(db, "ops.admin@example.com", "Ops Admin", RoleName.ADMIN)


@pytest.fixture
def math(db: Session) -> Subject:
    return make_subject(db, "Mathematics")


@pytest.fixture
def physics(db: Session) -> Subject:
    return make_subject(db, "Physics")


@pytest.fixture
def focus_one(
    db: Session, student: User, teacher: User, second_teacher: User, math: Subject, physics: Subject
) -> FocusOne:
    """Student's Focus-One: math with teacher then second_teacher, physics with teacher."""
    return make_focus_one(
        db,
        student,
        [(teacher, math), (second_teacher, math), (teacher, physics)],
    )


@pytest.fixture
def booking_service(db: Session, clock: FixedClock) -> SessionBookingService:
    return SessionBookingService(db, clock=clock)


@pytest.fixture
def client(
    session_factory: sessionmaker, clock: FixedClock
) -> Generator[TestClient, None, None]:
    """TestClient with the database and clock dependencies overridden."""
    from skyprep.api.dependencies.database import get_db
    from skyprep.api.dependencies.services import get_clock
    from skyprep.main import app

    def _override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
