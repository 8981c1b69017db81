"""Student requests through the booking orchestrator."""

from datetime import date, datetime

import pytest

from skyprep.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    PolicyViolationException,
    RepositoryException,
    SessionConflictException,
    ValidationException,
)
from skyprep.models.participant_calendar import ParticipantCalendar
from skyprep.models.session import TeachingSession
from skyprep.services.session_booking_service import NO_TEACHER_AVAILABLE_MESSAGE
from tests.utils.session_builders import (
    interval,
    make_cohort,
    make_focus_one,
    make_holiday,
    make_session,
    make_subject,
)

TODAY = date(2024, 6, 3)
MONDAY = date(2024, 6, 10)
SATURDAY = date(2024, 6, 8)


def request(service, student, focus_one, subject, day=MONDAY, hhmm="10:00", **kwargs):
    start, end = interval(day, hhmm)
    return service.request_session(
        student,
        start_time=start,
        end_time=end,
        focus_one_id=focus_one.id,
        subject_id=subject.id,
        **kwargs,
    )


@pytest.fixture
def other_focus(db, other_student, teacher, second_teacher, math):
    return make_focus_one(db, other_student, [(teacher, math), (second_teacher, math)])


class TestRequestSession:
    def test_creates_requested_session_with_first_mapped_teacher(
        self, booking_service, student, teacher, focus_one, math
    ):
        session = request(booking_service, student, focus_one, math)

        assert session.status == "requested"
        assert session.teacher_id == teacher.id
        assert session.student_id == student.id
        assert session.focus_one_id == focus_one.id
        assert session.cohort_id is None
        assert session.session_date == MONDAY
        assert session.requested_by_id == student.id
        assert session.meeting_link is None
        assert [entry.action for entry in session.history] == ["requested"]
        assert session.title == "Mathematics Session - Monday, June 10, 2024 at 10:00 AM"

    def test_custom_title_is_kept(self, booking_service, student, focus_one, math):
        session = request(booking_service, student, focus_one, math, title="  Calculus drill  ")
        assert session.title == "Calculus drill"

    def test_claims_calendar_rows(self, db, booking_service, student, teacher, focus_one, math):
        request(booking_service, student, focus_one, math)
        rows = dict(
            db.query(ParticipantCalendar.participant_id, ParticipantCalendar.version).filter(
                ParticipantCalendar.calendar_date == MONDAY
            )
        )
        assert rows == {student.id: 1, teacher.id: 1}

    @pytest.mark.parametrize("day, minutes", [(MONDAY, 60), (SATURDAY, 60), (MONDAY, 75)])
    def test_last_listed_slot_can_be_booked(
        self, booking_service, student, focus_one, math, day, minutes
    ):
        slots = booking_service.list_available_slots(
            student, focus_one_id=focus_one.id, subject_id=math.id, day=day, duration_minutes=minutes
        )
        last = slots[-1]

        session = booking_service.request_session(
            student,
            start_time=last.start,
            end_time=last.end,
            focus_one_id=focus_one.id,
            subject_id=math.id,
        )
        assert session.status == "requested"
        assert session.teacher_id in last.teacher_ids

    def test_same_day_request_is_rejected(self, booking_service, student, focus_one, math):
        with pytest.raises(PolicyViolationException) as exc_info:
            request(booking_service, student, focus_one, math, day=TODAY, hhmm="15:00")
        assert isinstance(exc_info.value, ValidationException)
        assert exc_info.value.rule == "booking_window_too_soon"

    def test_twelve_days_out_is_rejected(self, booking_service, student, focus_one, math):
        with pytest.raises(PolicyViolationException) as exc_info:
            request(booking_service, student, focus_one, math, day=date(2024, 6, 15))
        assert exc_info.value.rule == "booking_window_too_far"

    def test_sunday_is_rejected(self, booking_service, student, focus_one, math):
        with pytest.raises(PolicyViolationException) as exc_info:
            request(booking_service, student, focus_one, math, day=date(2024, 6, 9))
        assert exc_info.value.rule == "sunday_closed"

    def test_holiday_is_rejected(self, db, booking_service, student, focus_one, math):
        make_holiday(db, MONDAY)
        with pytest.raises(PolicyViolationException) as exc_info:
            request(booking_service, student, focus_one, math)
        assert exc_info.value.rule == "holiday"

    def test_after_hours_is_rejected(self, booking_service, student, focus_one, math):
        with pytest.raises(PolicyViolationException) as exc_info:
            request(booking_service, student, focus_one, math, hhmm="20:00")
        assert exc_info.value.rule == "start_too_late"

    def test_naive_datetimes_are_rejected(self, booking_service, student, focus_one, math):
        with pytest.raises(ValidationException) as exc_info:
            booking_service.request_session(
                student,
                start_time=datetime(2024, 6, 10, 10, 0),
                end_time=datetime(2024, 6, 10, 11, 15),
                focus_one_id=focus_one.id,
                subject_id=math.id,
            )
        assert exc_info.value.code == "NAIVE_DATETIME"


class TestTeacherBinding:
    def test_falls_back_to_next_free_teacher(
        self, db, booking_service, student, other_student, teacher, second_teacher, focus_one, other_focus, math
    ):
        start, end = interval(MONDAY, "10:00")
        make_session(db, teacher=teacher, student=other_student, focus_one=other_focus, start=start, end=end)

        session = request(booking_service, student, focus_one, math)
        assert session.teacher_id == second_teacher.id

    def test_no_teacher_free(
        self, db, booking_service, student, other_student, teacher, second_teacher, focus_one, other_focus, math
    ):
        start, end = interval(MONDAY, "10:00")
        for busy_teacher in (teacher, second_teacher):
            make_session(
                db, teacher=busy_teacher, student=other_student, focus_one=other_focus, start=start, end=end
            )

        with pytest.raises(SessionConflictException) as exc_info:
            request(booking_service, student, focus_one, math, hhmm="10:30")
        assert exc_info.value.message == NO_TEACHER_AVAILABLE_MESSAGE
        assert exc_info.value.details["scope"] == "teacher"
        assert db.query(TeachingSession).count() == 2

    def test_teacher_at_daily_cap_is_skipped(
        self, db, booking_service, student, other_student, teacher, second_teacher, focus_one, other_focus, math
    ):
        for hhmm in ("09:00", "10:15", "11:30", "12:45"):
            start, end = interval(MONDAY, hhmm)
            make_session(db, teacher=teacher, student=other_student, focus_one=other_focus, start=start, end=end)

        session = request(booking_service, student, focus_one, math, hhmm="15:00")
        assert session.teacher_id == second_teacher.id

    def test_student_busy(
        self, db, booking_service, student, teacher, focus_one, math, physics
    ):
        start, end = interval(MONDAY, "10:00")
        make_session(
            db, teacher=teacher, student=student, focus_one=focus_one, subject=physics, start=start, end=end
        )

        with pytest.raises(SessionConflictException) as exc_info:
            request(booking_service, student, focus_one, math, hhmm="10:30")
        assert exc_info.value.details["scope"] == "student"

    def test_back_to_back_is_allowed(self, db, booking_service, student, teacher, focus_one, math, physics):
        start, end = interval(MONDAY, "10:00")
        make_session(
            db, teacher=teacher, student=student, focus_one=focus_one, subject=physics, start=start, end=end
        )
        session = request(booking_service, student, focus_one, math, hhmm="11:15")
        assert session.teacher_id == teacher.id


class TestStudentLimits:
    def test_daily_limit(self, db, booking_service, student, teacher, focus_one, math, physics):
        for hhmm in ("09:00", "10:15", "11:30"):
            start, end = interval(MONDAY, hhmm)
            make_session(
                db, teacher=teacher, student=student, focus_one=focus_one, subject=physics, start=start, end=end
            )

        with pytest.raises(PolicyViolationException) as exc_info:
            request(booking_service, student, focus_one, math, hhmm="15:00")
        assert exc_info.value.rule == "student_daily_limit"

    def test_one_session_per_subject_per_day(self, booking_service, student, focus_one, math):
        request(booking_service, student, focus_one, math, hhmm="10:00")
        with pytest.raises(PolicyViolationException) as exc_info:
            request(booking_service, student, focus_one, math, hhmm="15:00")
        assert exc_info.value.rule == "student_subject_daily_limit"

    def test_other_day_is_fine(self, booking_service, student, focus_one, math):
        request(booking_service, student, focus_one, math)
        session = request(booking_service, student, focus_one, math, day=date(2024, 6, 11))
        assert session.session_date == date(2024, 6, 11)


class TestRequestValidation:
    def test_teacher_cannot_request(self, booking_service, teacher, focus_one, math):
        with pytest.raises(ForbiddenException):
            request(booking_service, teacher, focus_one, math)

    def test_student_cannot_use_another_program(
        self, booking_service, other_student, focus_one, math
    ):
        with pytest.raises(ForbiddenException):
            request(booking_service, other_student, focus_one, math)

    def test_unknown_focus_one(self, booking_service, student, math):
        start, end = interval(MONDAY, "10:00")
        with pytest.raises(NotFoundException) as exc_info:
            booking_service.request_session(
                student, start_time=start, end_time=end, focus_one_id="missing", subject_id=math.id
            )
        assert exc_info.value.code == "FOCUS_ONE_NOT_FOUND"

    def test_subject_without_teacher(self, db, booking_service, student, focus_one):
        chemistry = make_subject(db, "Chemistry")
        with pytest.raises(ValidationException) as exc_info:
            request(booking_service, student, focus_one, chemistry)
        assert exc_info.value.code == "SUBJECT_NOT_MAPPED"

    def test_paused_program(self, db, booking_service, student, focus_one, math):
        focus_one.status = "paused"
        db.commit()
        with pytest.raises(ValidationException) as exc_info:
            request(booking_service, student, focus_one, math)
        assert exc_info.value.code == "PROGRAM_INACTIVE"

    def test_student_holding_a_cohort_seat_too(self, db, booking_service, student, focus_one, math):
        make_cohort(db, "JEE Batch C", [student])
        with pytest.raises(RepositoryException):
            request(booking_service, student, focus_one, math)
        assert db.query(TeachingSession).count() == 0
