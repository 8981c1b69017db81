"""
Session lifecycle as an explicit transition table.

Statuses and actions are closed enums. ``transition`` looks a
(status, action) pair up in ``TRANSITIONS`` and returns either the
resulting ``Transition`` or a ``TransitionRejected`` carrying the reason,
so callers never branch on status strings themselves.

Who may ask for an operation is a separate table (``AUTHORIZATION``) keyed
by the actor's relationship to the session.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple, Union

from ..core.exceptions import SessionStateException


class SessionStatus(str, Enum):
    """Session lifecycle statuses."""

    REQUESTED = "requested"  # Student asked, teacher has not answered
    ACCEPTED = "accepted"  # Teacher accepted; immediately followed by scheduling
    REJECTED = "rejected"
    SCHEDULED = "scheduled"  # Confirmed with a meeting link
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


NON_TERMINAL_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {
        SessionStatus.REQUESTED,
        SessionStatus.ACCEPTED,
        SessionStatus.SCHEDULED,
        SessionStatus.ONGOING,
    }
)
TERMINAL_STATUSES: FrozenSet[SessionStatus] = frozenset(SessionStatus) - NON_TERMINAL_STATUSES
RESCHEDULABLE_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {SessionStatus.REQUESTED, SessionStatus.ACCEPTED, SessionStatus.SCHEDULED}
)


class SessionAction(str, Enum):
    REQUEST = "request"
    SCHEDULE = "schedule"
    ACCEPT = "accept"
    REJECT = "reject"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


class HistoryAction(str, Enum):
    """Entries written to a session's history."""

    REQUESTED = "requested"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    STARTED = "started"
    COMPLETED = "completed"
    RESCHEDULED = "rescheduled"
    DELETED = "deleted"
    RESTORED = "restored"


HISTORY_FOR_ACTION: Dict[SessionAction, HistoryAction] = {
    SessionAction.REQUEST: HistoryAction.REQUESTED,
    SessionAction.SCHEDULE: HistoryAction.SCHEDULED,
    SessionAction.ACCEPT: HistoryAction.ACCEPTED,
    SessionAction.REJECT: HistoryAction.REJECTED,
    SessionAction.START: HistoryAction.STARTED,
    SessionAction.COMPLETE: HistoryAction.COMPLETED,
    SessionAction.CANCEL: HistoryAction.CANCELLED,
}

# None stands for "no session yet" (creation)
TRANSITIONS: Dict[Tuple[Optional[SessionStatus], SessionAction], SessionStatus] = {
    (None, SessionAction.REQUEST): SessionStatus.REQUESTED,
    (None, SessionAction.SCHEDULE): SessionStatus.SCHEDULED,
    (SessionStatus.REQUESTED, SessionAction.ACCEPT): SessionStatus.ACCEPTED,
    (SessionStatus.REQUESTED, SessionAction.REJECT): SessionStatus.REJECTED,
    (SessionStatus.ACCEPTED, SessionAction.SCHEDULE): SessionStatus.SCHEDULED,
    (SessionStatus.SCHEDULED, SessionAction.START): SessionStatus.ONGOING,
    (SessionStatus.ONGOING, SessionAction.COMPLETE): SessionStatus.COMPLETED,
    **{(status, SessionAction.CANCEL): SessionStatus.CANCELLED for status in NON_TERMINAL_STATUSES},
}


@dataclass(frozen=True)
class Transition:
    previous: Optional[SessionStatus]
    new: SessionStatus
    action: SessionAction

    @property
    def history_action(self) -> HistoryAction:
        return HISTORY_FOR_ACTION[self.action]


@dataclass(frozen=True)
class TransitionRejected:
    current: Optional[SessionStatus]
    action: SessionAction
    reason: str


TransitionResult = Union[Transition, TransitionRejected]


def _rejection_reason(current: Optional[SessionStatus], action: SessionAction) -> str:
    if current is None:
        return f"A session cannot be created with action '{action.value}'"
    if current in TERMINAL_STATUSES:
        return f"Session is already {current.value}; no further changes are allowed"
    if action in (SessionAction.ACCEPT, SessionAction.REJECT):
        return f"Only requested sessions can be {action.value}ed (current status: {current.value})"
    return f"Cannot {action.value} a session that is {current.value}"


def transition(current: Optional[SessionStatus | str], action: SessionAction) -> TransitionResult:
    """Apply ``action`` to ``current`` using the transition table."""
    status = SessionStatus(current) if current is not None else None
    target = TRANSITIONS.get((status, action))
    if target is None:
        return TransitionRejected(status, action, _rejection_reason(status, action))
    return Transition(status, target, action)


def require_transition(current: Optional[SessionStatus | str], action: SessionAction) -> Transition:
    """Like ``transition`` but raises ``SessionStateException`` on rejection."""
    result = transition(current, action)
    if isinstance(result, TransitionRejected):
        raise SessionStateException(
            current_status=result.current.value if result.current else "new",
            action=action.value,
            reason=result.reason,
        )
    return result


def check_reschedulable(current: SessionStatus | str) -> Optional[TransitionRejected]:
    """Reschedule changes the interval, not the status; only early statuses allow it."""
    status = SessionStatus(current)
    if status in RESCHEDULABLE_STATUSES:
        return None
    return TransitionRejected(
        status,
        SessionAction.SCHEDULE,
        f"Only requested, accepted or scheduled sessions can be rescheduled "
        f"(current status: {status.value})",
    )


def require_reschedulable(current: SessionStatus | str) -> None:
    rejected = check_reschedulable(current)
    if rejected is not None:
        raise SessionStateException(
            current_status=SessionStatus(current).value, action="reschedule", reason=rejected.reason
        )


def is_active_status(status: SessionStatus | str) -> bool:
    return SessionStatus(status) in NON_TERMINAL_STATUSES


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class ActorRelation(str, Enum):
    ENROLLED_STUDENT = "enrolled_student"  # Student who owns the enrollment
    PARTICIPANT_STUDENT = "participant_student"
    ASSIGNED_TEACHER = "assigned_teacher"
    PRIVILEGED = "privileged"


class SessionOperation(str, Enum):
    REQUEST = "request"
    TEACHER_SCHEDULE = "teacher_schedule"
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    DELETE = "delete"
    RESTORE = "restore"
    VIEW = "view"


AUTHORIZATION: Dict[SessionOperation, FrozenSet[ActorRelation]] = {
    SessionOperation.REQUEST: frozenset({ActorRelation.ENROLLED_STUDENT}),
    SessionOperation.TEACHER_SCHEDULE: frozenset(
        {ActorRelation.PRIVILEGED, ActorRelation.ASSIGNED_TEACHER}
    ),
    SessionOperation.ACCEPT: frozenset({ActorRelation.ASSIGNED_TEACHER}),
    SessionOperation.REJECT: frozenset({ActorRelation.ASSIGNED_TEACHER}),
    SessionOperation.CANCEL: frozenset(
        {
            ActorRelation.PARTICIPANT_STUDENT,
            ActorRelation.ASSIGNED_TEACHER,
            ActorRelation.PRIVILEGED,
        }
    ),
    SessionOperation.RESCHEDULE: frozenset(
        {ActorRelation.PARTICIPANT_STUDENT, ActorRelation.ASSIGNED_TEACHER}
    ),
    SessionOperation.DELETE: frozenset({ActorRelation.PRIVILEGED}),
    SessionOperation.RESTORE: frozenset({ActorRelation.PRIVILEGED}),
    SessionOperation.VIEW: frozenset(
        {
            ActorRelation.PARTICIPANT_STUDENT,
            ActorRelation.ASSIGNED_TEACHER,
            ActorRelation.PRIVILEGED,
        }
    ),
}


def session_relations(
    actor_id: str,
    *,
    is_privileged: bool,
    teacher_id: Optional[str],
    student_id: Optional[str],
) -> FrozenSet[ActorRelation]:
    """Relationships ``actor_id`` has to an existing session."""
    relations = set()
    if is_privileged:
        relations.add(ActorRelation.PRIVILEGED)
    if teacher_id is not None and actor_id == teacher_id:
        relations.add(ActorRelation.ASSIGNED_TEACHER)
    if student_id is not None and actor_id == student_id:
        relations.add(ActorRelation.PARTICIPANT_STUDENT)
    return frozenset(relations)


def is_authorized(operation: SessionOperation, relations: Iterable[ActorRelation]) -> bool:
    return bool(AUTHORIZATION[operation] & frozenset(relations))
