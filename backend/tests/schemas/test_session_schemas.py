"""Request body validation."""

from datetime import datetime, timedelta, timezone

from pydantic import ValidationError
import pytest

from skyprep.schemas.session import (
    SessionAccept,
    SessionReason,
    SessionRequestCreate,
    TeacherScheduleCreate,
)

START = datetime(2024, 6, 10, 4, 30, tzinfo=timezone.utc)
END = START + timedelta(minutes=75)


@pytest.mark.unit
class TestIntervalBodies:
    def test_valid_request(self):
        body = SessionRequestCreate(start_time=START, end_time=END, focus_one_id="f", subject_id="s")
        assert body.end_time - body.start_time == timedelta(minutes=75)

    def test_end_before_start(self):
        with pytest.raises(ValidationError, match="end_time must be after start_time"):
            SessionRequestCreate(start_time=END, end_time=START, focus_one_id="f", subject_id="s")

    def test_naive_datetime(self):
        with pytest.raises(ValidationError, match="timezone offset"):
            SessionRequestCreate(
                start_time=START.replace(tzinfo=None), end_time=END, focus_one_id="f", subject_id="s"
            )

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            SessionRequestCreate(
                start_time=START, end_time=END, focus_one_id="f", subject_id="s", teacher_id="t"
            )


@pytest.mark.unit
class TestTeacherScheduleBody:
    def test_title_is_stripped(self):
        body = TeacherScheduleCreate(start_time=START, end_time=END, title="  Optics  ", cohort_id="c")
        assert body.title == "Optics"

    def test_blank_title(self):
        with pytest.raises(ValidationError):
            TeacherScheduleCreate(start_time=START, end_time=END, title="   ", cohort_id="c")

    @pytest.mark.parametrize("programs", [{}, {"focus_one_id": "f", "cohort_id": "c"}])
    def test_exactly_one_program(self, programs):
        with pytest.raises(ValidationError, match="exactly one"):
            TeacherScheduleCreate(start_time=START, end_time=END, title="Optics", **programs)


@pytest.mark.unit
class TestSmallBodies:
    def test_reason_bounds(self):
        assert SessionReason(reason="  Clashes with exam  ").reason == "Clashes with exam"
        for reason in ("sorry", "x" * 501):
            with pytest.raises(ValidationError):
                SessionReason(reason=reason)

    def test_meeting_link_must_be_https(self):
        assert SessionAccept(meeting_link="https://meet.jit.si/room").meeting_link == "https://meet.jit.si/room"
        with pytest.raises(ValidationError):
            SessionAccept(meeting_link="http://meet.jit.si/room")

    def test_meeting_platform(self):
        assert SessionAccept(meeting_platform="jitsi-meet").meeting_platform.value == "jitsi-meet"
        with pytest.raises(ValidationError):
            SessionAccept(meeting_platform="zoom")
