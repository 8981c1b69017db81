"""Slot availability against real session rows."""

from datetime import date, timedelta

import pytest

from skyprep.core.exceptions import ValidationException
from skyprep.domain.session_state import SessionStatus
from skyprep.services.slot_availability import SlotAvailabilityService
from tests.utils.session_builders import at, interval, make_holiday, make_session

MONDAY = date(2024, 6, 10)
SATURDAY = date(2024, 6, 8)
SUNDAY = date(2024, 6, 9)


@pytest.fixture
def slot_service(db):
    return SlotAvailabilityService(db)


def starts(slots):
    return [slot.start for slot in slots]


class TestTeacherSlots:
    def test_free_weekday(self, slot_service, teacher):
        slots = slot_service.list_teacher_slots(teacher.id, MONDAY, 75)
        assert len(slots) == 9
        assert slots[0].start == at(MONDAY, "09:00")
        assert slots[1].start == at(MONDAY, "10:15")
        assert slots[-1].start == at(MONDAY, "19:00")
        assert slots[-1].end == at(MONDAY, "20:15")

    def test_existing_session_blocks_its_interval(self, db, slot_service, teacher, student, focus_one):
        start, end = interval(MONDAY, "10:00")
        make_session(db, teacher=teacher, student=student, focus_one=focus_one, start=start, end=end)

        slots = slot_service.list_teacher_slots(teacher.id, MONDAY, 75)
        assert at(MONDAY, "11:15") in starts(slots)
        assert all(not (s.start < end and s.end > start) for s in slots)

    def test_terminal_and_deleted_sessions_do_not_block(
        self, db, slot_service, teacher, student, focus_one, clock
    ):
        start, end = interval(MONDAY, "09:00")
        make_session(
            db,
            teacher=teacher,
            student=student,
            focus_one=focus_one,
            start=start,
            end=end,
            status=SessionStatus.CANCELLED,
        )
        make_session(
            db,
            teacher=teacher,
            student=student,
            focus_one=focus_one,
            start=start,
            end=end,
            deleted_at=clock.now(),
        )
        assert slot_service.list_teacher_slots(teacher.id, MONDAY)[0].start == start

    def test_sunday_has_no_slots(self, slot_service, teacher):
        assert slot_service.list_teacher_slots(teacher.id, SUNDAY) == []

    def test_holiday_has_no_slots(self, db, slot_service, teacher):
        make_holiday(db, MONDAY, "Founders Day")
        assert slot_service.list_teacher_slots(teacher.id, MONDAY) == []

    def test_saturday_closes_at_four(self, slot_service, teacher):
        slots = slot_service.list_teacher_slots(teacher.id, SATURDAY, 75)
        assert len(slots) == 5
        assert slots[-1].end <= at(SATURDAY, "16:00")

    def test_short_slots_stop_at_latest_start(self, slot_service, teacher):
        weekday = slot_service.list_teacher_slots(teacher.id, MONDAY, 60)
        assert weekday[-1].start == at(MONDAY, "19:00")

        saturday = slot_service.list_teacher_slots(teacher.id, SATURDAY, 60)
        assert saturday[-1].start == at(SATURDAY, "15:00")
        assert saturday[-1].end == at(SATURDAY, "16:00")

    def test_teacher_at_daily_cap_has_no_slots(self, db, slot_service, teacher, student, focus_one):
        for hhmm in ("09:00", "10:15", "11:30", "12:45"):
            start, end = interval(MONDAY, hhmm)
            make_session(
                db, teacher=teacher, student=student, focus_one=focus_one, start=start, end=end
            )
        assert slot_service.list_teacher_slots(teacher.id, MONDAY) == []

    def test_custom_duration(self, slot_service, teacher):
        slots = slot_service.list_teacher_slots(teacher.id, MONDAY, 240)
        assert [s.end - s.start for s in slots] == [timedelta(minutes=240)] * 3

    @pytest.mark.parametrize("minutes", [0, -30, 721])
    def test_invalid_duration(self, slot_service, teacher, minutes):
        with pytest.raises(ValidationException) as exc_info:
            slot_service.list_teacher_slots(teacher.id, MONDAY, minutes)
        assert exc_info.value.code == "INVALID_DURATION"

    def test_default_duration(self, slot_service):
        assert slot_service.resolve_duration(None) == timedelta(minutes=75)


class TestMergedSlots:
    def test_slots_list_every_free_teacher(
        self, db, slot_service, teacher, second_teacher, student, focus_one
    ):
        start, end = interval(MONDAY, "09:00")
        make_session(db, teacher=teacher, student=student, focus_one=focus_one, start=start, end=end)

        slots = slot_service.list_slots_for_teachers([teacher.id, second_teacher.id], MONDAY)
        by_start = {slot.start: slot.teacher_ids for slot in slots}
        assert by_start[at(MONDAY, "09:00")] == [second_teacher.id]
        assert by_start[at(MONDAY, "10:15")] == [teacher.id, second_teacher.id]
        assert starts(slots) == sorted(starts(slots))

    def test_closed_day(self, slot_service, teacher):
        assert slot_service.list_slots_for_teachers([teacher.id], SUNDAY) == []
