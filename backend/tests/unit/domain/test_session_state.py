"""Unit tests for the session transition table and authorization table."""

import pytest

from skyprep.core.exceptions import SessionStateException
from skyprep.domain.program_reference import (
    CohortRef,
    FocusOneRef,
    program_from_columns,
    program_to_columns,
)
from skyprep.domain.session_state import (
    NON_TERMINAL_STATUSES,
    TERMINAL_STATUSES,
    ActorRelation,
    HistoryAction,
    SessionAction,
    SessionOperation,
    SessionStatus,
    Transition,
    TransitionRejected,
    check_reschedulable,
    is_active_status,
    is_authorized,
    require_reschedulable,
    require_transition,
    session_relations,
    transition,
)


@pytest.mark.unit
class TestTransitions:
    @pytest.mark.parametrize(
        "current, action, expected",
        [
            (None, SessionAction.REQUEST, SessionStatus.REQUESTED),
            (None, SessionAction.SCHEDULE, SessionStatus.SCHEDULED),
            (SessionStatus.REQUESTED, SessionAction.ACCEPT, SessionStatus.ACCEPTED),
            (SessionStatus.REQUESTED, SessionAction.REJECT, SessionStatus.REJECTED),
            (SessionStatus.ACCEPTED, SessionAction.SCHEDULE, SessionStatus.SCHEDULED),
            (SessionStatus.SCHEDULED, SessionAction.START, SessionStatus.ONGOING),
            (SessionStatus.ONGOING, SessionAction.COMPLETE, SessionStatus.COMPLETED),
            (SessionStatus.ONGOING, SessionAction.CANCEL, SessionStatus.CANCELLED),
        ],
    )
    def test_legal_transitions(self, current, action, expected):
        result = transition(current, action)
        assert isinstance(result, Transition)
        assert result.new == expected
        assert result.previous == current

    def test_accepts_status_strings(self):
        result = transition("requested", SessionAction.ACCEPT)
        assert isinstance(result, Transition)
        assert result.history_action == HistoryAction.ACCEPTED

    def test_reject_scheduled_session_is_refused(self):
        result = transition(SessionStatus.SCHEDULED, SessionAction.REJECT)
        assert isinstance(result, TransitionRejected)
        assert "Only requested sessions" in result.reason

        with pytest.raises(SessionStateException) as exc_info:
            require_transition("scheduled", SessionAction.REJECT)
        assert exc_info.value.status_code == 409
        assert exc_info.value.details == {"current_status": "scheduled", "action": "reject"}

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_allow_nothing(self, terminal):
        for action in SessionAction:
            result = transition(terminal, action)
            assert isinstance(result, TransitionRejected)
            assert "no further changes" in result.reason

    def test_every_non_terminal_status_can_be_cancelled(self):
        for status in NON_TERMINAL_STATUSES:
            assert transition(status, SessionAction.CANCEL).new == SessionStatus.CANCELLED

    def test_creation_only_by_request_or_schedule(self):
        assert isinstance(transition(None, SessionAction.ACCEPT), TransitionRejected)
        with pytest.raises(SessionStateException) as exc_info:
            require_transition(None, SessionAction.CANCEL)
        assert exc_info.value.current_status == "new"


@pytest.mark.unit
class TestReschedulable:
    @pytest.mark.parametrize("status", ["requested", "accepted", "scheduled"])
    def test_early_statuses(self, status):
        assert check_reschedulable(status) is None
        require_reschedulable(status)

    @pytest.mark.parametrize("status", ["ongoing", "completed", "cancelled", "rejected"])
    def test_other_statuses(self, status):
        assert check_reschedulable(status) is not None
        with pytest.raises(SessionStateException):
            require_reschedulable(status)

    def test_active_statuses(self):
        assert is_active_status("ongoing")
        assert not is_active_status(SessionStatus.CANCELLED)


@pytest.mark.unit
class TestAuthorization:
    def relations(self, actor_id, privileged=False):
        return session_relations(
            actor_id, is_privileged=privileged, teacher_id="teacher", student_id="student"
        )

    def test_relations(self):
        assert self.relations("teacher") == {ActorRelation.ASSIGNED_TEACHER}
        assert self.relations("student") == {ActorRelation.PARTICIPANT_STUDENT}
        assert self.relations("admin", privileged=True) == {ActorRelation.PRIVILEGED}
        assert self.relations("stranger") == frozenset()

    def test_only_teacher_accepts_and_rejects(self):
        for operation in (SessionOperation.ACCEPT, SessionOperation.REJECT):
            assert is_authorized(operation, self.relations("teacher"))
            assert not is_authorized(operation, self.relations("student"))
            assert not is_authorized(operation, self.relations("admin", privileged=True))

    def test_cancel(self):
        assert is_authorized(SessionOperation.CANCEL, self.relations("student"))
        assert is_authorized(SessionOperation.CANCEL, self.relations("teacher"))
        assert is_authorized(SessionOperation.CANCEL, self.relations("admin", privileged=True))
        assert not is_authorized(SessionOperation.CANCEL, self.relations("stranger"))

    def test_reschedule_is_for_participants(self):
        assert is_authorized(SessionOperation.RESCHEDULE, self.relations("student"))
        assert not is_authorized(
            SessionOperation.RESCHEDULE, self.relations("admin", privileged=True)
        )

    def test_delete_and_restore_need_privilege(self):
        for operation in (SessionOperation.DELETE, SessionOperation.RESTORE):
            assert is_authorized(operation, self.relations("admin", privileged=True))
            assert not is_authorized(operation, self.relations("teacher"))

    def test_cohort_session_has_no_student_relation(self):
        relations = session_relations("student", is_privileged=False, teacher_id="t", student_id=None)
        assert not is_authorized(SessionOperation.VIEW, relations)


@pytest.mark.unit
class TestProgramReference:
    def test_round_trip_columns(self):
        assert program_from_columns("f1", None) == FocusOneRef("f1")
        assert program_to_columns(CohortRef("c1")) == {"focus_one_id": None, "cohort_id": "c1"}

    @pytest.mark.parametrize("focus_one_id, cohort_id", [("f1", "c1"), (None, None)])
    def test_exactly_one_program(self, focus_one_id, cohort_id):
        with pytest.raises(ValueError):
            program_from_columns(focus_one_id, cohort_id)
