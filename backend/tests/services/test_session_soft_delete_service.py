"""Soft delete and restore."""

from datetime import date

import pytest

from skyprep.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    SessionConflictException,
    SessionStateException,
)
from tests.utils.session_builders import interval

MONDAY = date(2024, 6, 10)
REASON = "Teacher unavailable that morning"


@pytest.fixture
def scheduled(booking_service, teacher, focus_one):
    start, end = interval(MONDAY, "10:00")
    return booking_service.teacher_schedule_session(
        teacher, start_time=start, end_time=end, title="Mock test review", focus_one_id=focus_one.id
    )


def schedule_again(service, teacher, focus_one, session):
    return service.teacher_schedule_session(
        teacher,
        start_time=session.start_time,
        end_time=session.end_time,
        title="Replacement",
        focus_one_id=focus_one.id,
    )


class TestSoftDelete:
    def test_delete_hides_session(self, booking_service, admin, student, scheduled):
        session = booking_service.soft_delete_session(admin, scheduled.id)

        assert session.deleted_at is not None
        assert session.deleted_by_id == admin.id
        assert session.status == "scheduled"
        assert session.history[-1].action == "deleted"
        with pytest.raises(NotFoundException):
            booking_service.get_session(student, scheduled.id)
        assert booking_service.get_session(admin, scheduled.id).is_deleted

    def test_deleted_session_does_not_block(self, booking_service, admin, teacher, focus_one, scheduled):
        booking_service.soft_delete_session(admin, scheduled.id)
        assert schedule_again(booking_service, teacher, focus_one, scheduled).status == "scheduled"

    def test_delete_twice(self, booking_service, admin, scheduled):
        booking_service.soft_delete_session(admin, scheduled.id)
        with pytest.raises(SessionStateException):
            booking_service.soft_delete_session(admin, scheduled.id)

    def test_participants_cannot_delete(self, booking_service, teacher, student, scheduled):
        for actor in (teacher, student):
            with pytest.raises(ForbiddenException):
                booking_service.soft_delete_session(actor, scheduled.id)


class TestRestore:
    def test_restore(self, booking_service, admin, student, scheduled):
        booking_service.soft_delete_session(admin, scheduled.id)
        session = booking_service.restore_session(admin, scheduled.id)

        assert session.deleted_at is None
        assert session.deleted_by_id is None
        assert [h.action for h in session.history][-2:] == ["deleted", "restored"]
        assert booking_service.get_session(student, scheduled.id).id == scheduled.id

    def test_restore_blocked_by_newer_booking(self, booking_service, admin, teacher, focus_one, scheduled):
        booking_service.soft_delete_session(admin, scheduled.id)
        schedule_again(booking_service, teacher, focus_one, scheduled)

        with pytest.raises(SessionConflictException):
            booking_service.restore_session(admin, scheduled.id)

    def test_restore_cancelled_session_skips_conflict_check(
        self, booking_service, admin, teacher, focus_one, scheduled
    ):
        booking_service.cancel_session(teacher, scheduled.id, REASON)
        booking_service.soft_delete_session(admin, scheduled.id)
        schedule_again(booking_service, teacher, focus_one, scheduled)

        session = booking_service.restore_session(admin, scheduled.id)
        assert session.status == "cancelled"
        assert session.deleted_at is None

    def test_restore_live_session(self, booking_service, admin, scheduled):
        with pytest.raises(SessionStateException):
            booking_service.restore_session(admin, scheduled.id)

    def test_teacher_cannot_restore(self, booking_service, admin, teacher, scheduled):
        booking_service.soft_delete_session(admin, scheduled.id)
        with pytest.raises(NotFoundException):
            booking_service.get_session(teacher, scheduled.id)
        with pytest.raises(ForbiddenException):
            booking_service.restore_session(teacher, scheduled.id)
