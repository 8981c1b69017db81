"""Time-driven transitions performed by the status sweep."""

from datetime import date, timedelta

import pytest

from skyprep.domain.session_state import SessionStatus
from skyprep.services.session_lifecycle_service import SessionLifecycleService
from tests.utils.session_builders import at, interval, make_session

TODAY = date(2024, 6, 3)


@pytest.fixture
def lifecycle(db, clock):
    return SessionLifecycleService(db, clock=clock)


@pytest.fixture
def morning(db, teacher, student, focus_one):
    start, end = interval(TODAY, "09:00")
    return make_session(db, teacher=teacher, student=student, focus_one=focus_one, start=start, end=end)


class TestAdvanceStatuses:
    def test_nothing_due(self, lifecycle, morning):
        result = lifecycle.advance_statuses()
        assert result.to_dict() == {"started": 0, "completed": 0, "skipped": 0}
        assert morning.status == "scheduled"

    def test_start_then_complete(self, lifecycle, morning, clock):
        clock.set(at(TODAY, "09:30"))
        assert lifecycle.advance_statuses().started == 1
        assert morning.status == SessionStatus.ONGOING.value
        assert morning.started_at == clock.now()

        clock.advance(hours=1)
        assert lifecycle.advance_statuses().completed == 1
        assert morning.status == SessionStatus.COMPLETED.value
        assert [h.action for h in morning.history] == ["started", "completed"]
        assert all(h.performed_by_id is None for h in morning.history)

    def test_overdue_session_goes_through_both_steps(self, lifecycle, morning):
        result = lifecycle.advance_statuses(now=at(TODAY, "12:00"))
        assert (result.started, result.completed) == (1, 1)
        assert morning.status == "completed"

    def test_requested_and_deleted_sessions_are_left_alone(
        self, db, lifecycle, teacher, student, focus_one, clock
    ):
        start, end = interval(TODAY, "09:00")
        pending = make_session(
            db,
            teacher=teacher,
            student=student,
            focus_one=focus_one,
            start=start,
            end=end,
            status=SessionStatus.REQUESTED,
        )
        hidden = make_session(
            db, teacher=teacher, student=student, focus_one=focus_one, start=start, end=end, deleted_at=clock.now()
        )
        lifecycle.advance_statuses(now=end + timedelta(minutes=1))
        assert pending.status == "requested"
        assert hidden.status == "scheduled"
