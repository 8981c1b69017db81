"""Rescheduling keeps status and participants and records the old interval."""

from datetime import date

import pytest

from skyprep.core.exceptions import (
    ForbiddenException,
    PolicyViolationException,
    SessionConflictException,
    SessionStateException,
    ValidationException,
)
from skyprep.domain.session_state import SessionStatus
from skyprep.models.participant_calendar import ParticipantCalendar
from tests.utils.session_builders import interval, make_focus_one, make_session

TODAY = date(2024, 6, 3)
MONDAY = date(2024, 6, 10)
TUESDAY = date(2024, 6, 11)


@pytest.fixture
def requested(booking_service, student, focus_one, math):
    start, end = interval(MONDAY, "10:00")
    return booking_service.request_session(
        student, start_time=start, end_time=end, focus_one_id=focus_one.id, subject_id=math.id
    )


def move(service, actor, session, day, hhmm, minutes=75):
    start, end = interval(day, hhmm, minutes)
    return service.reschedule_session(actor, session.id, start_time=start, end_time=end)


class TestReschedule:
    def test_student_moves_request_same_day(self, booking_service, student, requested):
        old_start, old_end = requested.start_time, requested.end_time
        session = move(booking_service, student, requested, MONDAY, "15:00")

        assert session.status == "requested"
        assert session.start_time == interval(MONDAY, "15:00")[0]
        assert len(session.reschedules) == 1
        record = session.reschedules[0]
        assert record.previous_start_time == old_start
        assert record.previous_end_time == old_end
        assert record.rescheduled_by_id == student.id
        entry = session.history[-1]
        assert entry.action == "rescheduled"
        assert entry.previous_status == entry.new_status == "requested"
        assert entry.changes["previous_start_time"] == old_start.isoformat()

    def test_move_to_another_day(self, db, booking_service, student, teacher, requested):
        session = move(booking_service, student, requested, TUESDAY, "10:00")

        assert session.session_date == TUESDAY
        versions = {
            (participant_id, calendar_date): version
            for participant_id, calendar_date, version in db.query(
                ParticipantCalendar.participant_id,
                ParticipantCalendar.calendar_date,
                ParticipantCalendar.version,
            )
        }
        assert versions[(student.id, MONDAY)] == 2
        assert versions[(teacher.id, TUESDAY)] == 1

    def test_overlapping_its_own_interval(self, booking_service, teacher, requested):
        session = move(booking_service, teacher, requested, MONDAY, "10:30")
        assert session.start_time == interval(MONDAY, "10:30")[0]

    def test_meeting_link_is_kept(self, booking_service, teacher, requested):
        scheduled = booking_service.accept_request(teacher, requested.id)
        link = scheduled.meeting_link
        session = move(booking_service, teacher, scheduled, MONDAY, "16:00")
        assert session.status == "scheduled"
        assert session.meeting_link == link

    def test_no_change(self, booking_service, student, requested):
        with pytest.raises(ValidationException) as exc_info:
            move(booking_service, student, requested, MONDAY, "10:00")
        assert exc_info.value.code == "RESCHEDULE_NO_CHANGE"

    def test_conflict(self, db, booking_service, student, teacher, other_student, math, requested):
        other_focus = make_focus_one(db, other_student, [(teacher, math)])
        start, end = interval(MONDAY, "15:00")
        make_session(db, teacher=teacher, student=other_student, focus_one=other_focus, start=start, end=end)

        with pytest.raises(SessionConflictException) as exc_info:
            move(booking_service, student, requested, MONDAY, "15:30")
        assert exc_info.value.details["scope"] == "teacher"

    def test_student_move_respects_booking_window(self, booking_service, student, requested):
        with pytest.raises(PolicyViolationException) as exc_info:
            move(booking_service, student, requested, TODAY, "15:00")
        assert exc_info.value.rule == "booking_window_too_soon"

    def test_teacher_move_only_needs_future_time(self, booking_service, teacher, requested):
        session = move(booking_service, teacher, requested, TODAY, "15:00")
        assert session.session_date == TODAY

    def test_closed_day(self, booking_service, teacher, requested):
        with pytest.raises(PolicyViolationException) as exc_info:
            move(booking_service, teacher, requested, date(2024, 6, 9), "10:00")
        assert exc_info.value.rule == "sunday_closed"

    def test_student_daily_limit_on_new_day(
        self, db, booking_service, student, teacher, focus_one, physics, requested
    ):
        for hhmm in ("09:00", "10:15", "11:30"):
            start, end = interval(TUESDAY, hhmm)
            make_session(
                db, teacher=teacher, student=student, focus_one=focus_one, subject=physics, start=start, end=end
            )
        with pytest.raises(PolicyViolationException) as exc_info:
            move(booking_service, student, requested, TUESDAY, "15:00")
        assert exc_info.value.rule == "student_daily_limit"

    def test_completed_session(self, db, booking_service, teacher, student, focus_one):
        start, end = interval(MONDAY, "10:00")
        done = make_session(
            db,
            teacher=teacher,
            student=student,
            focus_one=focus_one,
            start=start,
            end=end,
            status=SessionStatus.COMPLETED,
        )
        with pytest.raises(SessionStateException):
            move(booking_service, teacher, done, MONDAY, "15:00")

    def test_admin_cannot_reschedule(self, booking_service, admin, requested):
        with pytest.raises(ForbiddenException):
            move(booking_service, admin, requested, MONDAY, "15:00")
