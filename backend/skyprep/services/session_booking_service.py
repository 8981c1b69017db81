# backend/skyprep/services/session_booking_service.py
"""
Session Booking Service for the SkyPrep session backend.

Orchestrates every write to a teaching session:

    1. load the session / enrollment context
    2. re-validate the calendar policy (holiday lookup first)
    3. re-run the conflict check for teacher and student
    4. apply the state machine transition
    5. persist in one transaction, arbitrated by participant calendar versions
    6. after commit: metrics and notifications

Slot listings are hints only; nothing here trusts a slot a client saw
earlier. There is no in-process lock: two concurrent writers that both
pass step 3 race on the calendar version bump, the loser rolls back and
retries from step 1, where the conflict check now sees the winner.
"""

from datetime import date, datetime
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.clock import Clock, SystemClock
from ..core.config import Settings, settings as default_settings
from ..core.constants import MAX_REASON_LENGTH, MAX_TITLE_LENGTH, MIN_REASON_LENGTH
from ..core.exceptions import (
    ForbiddenException,
    NotFoundException,
    PolicyViolationException,
    SessionConflictException,
    SessionStateException,
    StorageContentionException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, format_session_moment
from ..domain.calendar_policy import CalendarPolicy, PolicyDecision
from ..domain.program_reference import CohortRef, FocusOneRef, ProgramRef
from ..domain.session_state import (
    HistoryAction,
    SessionAction,
    SessionOperation,
    is_active_status,
    is_authorized,
    require_reschedulable,
    require_transition,
    session_relations,
)
from ..models.enrollment import Cohort, FocusOne
from ..models.session import TeachingSession
from ..models.subject import Subject
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.participant_calendar_repository import CalendarKey
from ..repositories.session_repository import SessionRepository
from .base import BaseService
from .conflict_checker import ConflictChecker, SessionConflict
from .meeting_link_service import MeetingLinkService
from .notification_service import NotificationService
from .notification_templates import SessionEvent
from .slot_availability import AvailableSlot, SlotAvailabilityService

logger = logging.getLogger(__name__)

TEACHER_CONFLICT_MESSAGE = "The teacher already has a session at this time"
STUDENT_CONFLICT_MESSAGE = "The student already has a session at this time"
GENERIC_CONFLICT_MESSAGE = "This time slot conflicts with an existing session"
NO_TEACHER_AVAILABLE_MESSAGE = "No teacher for this subject is available at this time"

TEACHER_OVERLAP_CONSTRAINT = "sessions_no_overlap_per_teacher"
STUDENT_OVERLAP_CONSTRAINT = "sessions_no_overlap_per_student"

# SQLSTATEs that mean "another transaction got there first"
_CONTENTION_SQLSTATES = {"40001", "40P01", "55P03"}


class _WriteContention(Exception):
    """A concurrent writer advanced a calendar version or the session row first."""


class SessionBookingService(BaseService):
    """
    Booking orchestrator for teaching sessions.

    Every public write goes through ``_run_write`` which owns the
    transaction and the bounded retry on write contention.
    """

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
        policy: Optional[CalendarPolicy] = None,
        session_repository: Optional[SessionRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        slot_service: Optional[SlotAvailabilityService] = None,
        meeting_links: Optional[MeetingLinkService] = None,
    ):
        """
        Initialize the booking service.

        Args:
            db: Database session
            notification_service: Optional notifier; omitted means no emails
            clock: Source of "now" (SystemClock by default)
            config: Settings override
            policy: Calendar policy override
        """
        super().__init__(db)
        self.config = config or default_settings
        self.clock: Clock = clock or SystemClock()
        self.policy = policy or CalendarPolicy.from_settings(self.config)
        self.notification_service = notification_service

        self.session_repository = session_repository or RepositoryFactory.create_session_repository(db)
        self.calendar_repository = RepositoryFactory.create_participant_calendar_repository(db)
        self.enrollment_repository = RepositoryFactory.create_enrollment_repository(db)
        self.holiday_repository = RepositoryFactory.create_holiday_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.subject_repository = RepositoryFactory.create_base_repository(db, Subject)

        self.conflict_checker = conflict_checker or ConflictChecker(db, tz=self.policy.tz)
        self.slot_service = slot_service or SlotAvailabilityService(
            db,
            policy=self.policy,
            holiday_repository=self.holiday_repository,
            config=self.config,
        )
        self.meeting_links = meeting_links or MeetingLinkService(self.config)

    # ------------------------------------------------------------------
    # Student request
    # ------------------------------------------------------------------

    @BaseService.measure_operation("request_session")
    def request_session(
        self,
        actor: User,
        *,
        start_time: datetime,
        end_time: datetime,
        focus_one_id: str,
        subject_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> TeachingSession:
        """
        Student asks for a session inside their Focus-One program.

        The first teacher mapped to the subject (mapping order) who is free
        and under the daily cap is bound to the session.

        Raises:
            ForbiddenException: actor is not the enrolled student
            NotFoundException: Focus-One or subject missing
            ValidationException: policy, booking window or daily limits
            SessionConflictException: no mapped teacher is free, or the student is busy
        """
        self.log_operation(
            "request_session",
            actor_id=actor.id,
            focus_one_id=focus_one_id,
            subject_id=subject_id,
            start_time=start_time.isoformat(),
        )
        if not actor.is_student:
            raise ForbiddenException("Only students can request sessions")

        start, end = self._normalize_interval(start_time, end_time)
        focus_one = self._load_focus_one(focus_one_id)
        if focus_one.student_id != actor.id:
            raise ForbiddenException("You can only request sessions for your own program")
        self._ensure_program_active(focus_one)
        if self.enrollment_repository.get_program_for_student(actor.id) != focus_one.ref:
            raise ForbiddenException("Requests must use the student's current enrollment")
        subject = self._load_subject(subject_id)
        teacher_ids = self._mapped_teachers(focus_one, subject_id)

        session_title = self._resolve_title(title, subject, start)
        day = self.policy_date(start)
        student_id = actor.id

        def attempt() -> TeachingSession:
            now = self._now()
            self._check_policy(start, end, now=now, booking_window=True)
            versions = self.calendar_repository.read_versions(
                [(student_id, day)] + [(teacher_id, day) for teacher_id in teacher_ids]
            )
            self._check_student_limits(student_id, day, subject_id)

            teacher_id = self._pick_teacher(teacher_ids, start, end, day)
            self._raise_on_conflict(
                self.conflict_checker.find_conflict(start, end, student_id=student_id)
            )

            transition = require_transition(None, SessionAction.REQUEST)
            session = TeachingSession(
                title=session_title,
                description=description,
                start_time=start,
                end_time=end,
                session_date=day,
                teacher_id=teacher_id,
                student_id=student_id,
                subject_id=subject_id,
                status=transition.new.value,
                created_by_id=actor.id,
                requested_by_id=actor.id,
                requested_at=now,
            )
            session.program = focus_one.ref
            self.session_repository.add_session(session)
            self.session_repository.add_history(
                session,
                transition.history_action,
                performed_by_id=actor.id,
                performed_at=now,
                new_status=transition.new.value,
            )
            self._flush_and_claim(self._claims(versions, [teacher_id, student_id], day))
            return session

        session = self._run_write("request_session", attempt)
        self._after_commit(HistoryAction.REQUESTED, SessionEvent.REQUESTED, session, actor.id)
        return session

    # ------------------------------------------------------------------
    # Direct scheduling by a teacher or admin
    # ------------------------------------------------------------------

    @BaseService.measure_operation("teacher_schedule_session")
    def teacher_schedule_session(
        self,
        actor: User,
        *,
        start_time: datetime,
        end_time: datetime,
        title: Optional[str] = None,
        description: Optional[str] = None,
        focus_one_id: Optional[str] = None,
        cohort_id: Optional[str] = None,
        subject_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
    ) -> TeachingSession:
        """
        Create a session directly in ``scheduled`` with a meeting link.

        Teachers schedule for themselves; admins must name the teacher. The
        booking window does not apply, business hours and closed days do.
        """
        self.log_operation(
            "teacher_schedule_session",
            actor_id=actor.id,
            focus_one_id=focus_one_id,
            cohort_id=cohort_id,
            teacher_id=teacher_id,
        )
        if not (actor.is_privileged or actor.is_teacher):
            raise ForbiddenException("Only teachers and admins can schedule sessions")

        start, end = self._normalize_interval(start_time, end_time)
        program = self._program_ref(focus_one_id, cohort_id)
        teacher = self._resolve_scheduling_teacher(actor, teacher_id)
        subject = self._load_subject(subject_id) if subject_id else None

        student_id: Optional[str] = None
        if isinstance(program, FocusOneRef):
            focus_one = self._load_focus_one(program.id)
            self._ensure_program_active(focus_one)
            mapped = (
                teacher.id in focus_one.teacher_ids_for_subject(subject_id)
                if subject_id
                else focus_one.has_teacher(teacher.id)
            )
            if not mapped:
                if actor.is_privileged:
                    raise ValidationException(
                        "Teacher is not assigned to this Focus-One program",
                        code="TEACHER_NOT_MAPPED",
                        details={"teacher_id": teacher.id, "focus_one_id": focus_one.id},
                    )
                raise ForbiddenException("You are not assigned to this Focus-One program")
            student_id = focus_one.student_id
        else:
            self._ensure_program_active(self._load_cohort(program.id))

        session_title = self._resolve_title(title, subject, start)
        day = self.policy_date(start)
        participants = [teacher.id] + ([student_id] if student_id else [])

        def attempt() -> TeachingSession:
            now = self._now()
            self._check_policy(start, end, now=now, booking_window=False)
            versions = self.calendar_repository.read_versions((p, day) for p in participants)
            if self.conflict_checker.teacher_at_daily_cap(
                teacher.id, day, self.config.teacher_max_sessions_per_day
            ):
                raise PolicyViolationException(
                    "teacher_daily_limit",
                    f"Teachers can hold at most {self.config.teacher_max_sessions_per_day} "
                    "sessions per day",
                )
            self._raise_on_conflict(
                self.conflict_checker.find_conflict(
                    start, end, teacher_id=teacher.id, student_id=student_id
                )
            )

            transition = require_transition(None, SessionAction.SCHEDULE)
            meeting_link, meeting_platform = self.meeting_links.resolve(session_title)
            session = TeachingSession(
                title=session_title,
                description=description,
                start_time=start,
                end_time=end,
                session_date=day,
                teacher_id=teacher.id,
                student_id=student_id,
                subject_id=subject_id,
                status=transition.new.value,
                meeting_link=meeting_link,
                meeting_platform=meeting_platform,
                created_by_id=actor.id,
            )
            session.program = program
            self.session_repository.add_session(session)
            self.session_repository.add_history(
                session,
                transition.history_action,
                performed_by_id=actor.id,
                performed_at=now,
                new_status=transition.new.value,
            )
            self._flush_and_claim(self._claims(versions, participants, day))
            return session

        session = self._run_write("teacher_schedule_session", attempt)
        self._after_commit(HistoryAction.SCHEDULED, SessionEvent.SCHEDULED, session, actor.id)
        return session

    # ------------------------------------------------------------------
    # Teacher response to a request
    # ------------------------------------------------------------------

    @BaseService.measure_operation("accept_request")
    def accept_request(
        self,
        actor: User,
        session_id: str,
        meeting_link: Optional[str] = None,
        meeting_platform: Optional[str] = None,
    ) -> TeachingSession:
        """
        Accept a requested session and schedule it in the same write.

        Policy and conflicts are re-checked; both history entries
        (accepted, scheduled) are recorded.
        """
        self.log_operation("accept_request", actor_id=actor.id, session_id=session_id)

        def attempt() -> TeachingSession:
            now = self._now()
            session = self._load_session(session_id)
            self._authorize(SessionOperation.ACCEPT, actor, session)
            accepted = require_transition(session.status, SessionAction.ACCEPT)
            scheduled = require_transition(accepted.new, SessionAction.SCHEDULE)

            self._check_policy(session.start_time, session.end_time, now=now, booking_window=False)
            versions = self.calendar_repository.read_versions(
                (p, session.session_date) for p in session.participant_ids()
            )
            self._raise_on_conflict(
                self.conflict_checker.find_conflict(
                    session.start_time,
                    session.end_time,
                    teacher_id=session.teacher_id,
                    student_id=session.student_id,
                    exclude_session_id=session.id,
                )
            )

            link, platform = self.meeting_links.resolve(session.title, meeting_link, meeting_platform)
            session.status = scheduled.new.value
            session.accepted_by_id = actor.id
            session.accepted_at = now
            session.meeting_link = link
            session.meeting_platform = platform
            for step in (accepted, scheduled):
                self.session_repository.add_history(
                    session,
                    step.history_action,
                    performed_by_id=actor.id,
                    performed_at=now,
                    previous_status=step.previous.value if step.previous else None,
                    new_status=step.new.value,
                )
            self._flush_and_claim(versions)
            return session

        session = self._run_write("accept_request", attempt)
        prometheus_metrics.inc_session_transition(HistoryAction.ACCEPTED.value)
        self._after_commit(HistoryAction.SCHEDULED, SessionEvent.ACCEPTED, session, actor.id)
        return session

    @BaseService.measure_operation("reject_request")
    def reject_request(self, actor: User, session_id: str, reason: str) -> TeachingSession:
        """Reject a requested session; a 10-500 character reason is required."""
        self.log_operation("reject_request", actor_id=actor.id, session_id=session_id)
        cleaned = self._clean_reason(reason, "Rejection reason")

        def attempt() -> TeachingSession:
            now = self._now()
            session = self._load_session(session_id)
            self._authorize(SessionOperation.REJECT, actor, session)
            transition = require_transition(session.status, SessionAction.REJECT)

            session.status = transition.new.value
            session.rejected_by_id = actor.id
            session.rejected_at = now
            session.rejection_reason = cleaned
            self.session_repository.add_history(
                session,
                transition.history_action,
                performed_by_id=actor.id,
                performed_at=now,
                previous_status=transition.previous.value if transition.previous else None,
                new_status=transition.new.value,
                notes=cleaned,
            )
            self._flush_and_claim({})
            return session

        session = self._run_write("reject_request", attempt)
        self._after_commit(
            HistoryAction.REJECTED, SessionEvent.REJECTED, session, actor.id, reason=cleaned
        )
        return session

    # ------------------------------------------------------------------
    # Participant operations
    # ------------------------------------------------------------------

    @BaseService.measure_operation("cancel_session")
    def cancel_session(self, actor: User, session_id: str, reason: str) -> TeachingSession:
        """Cancel a non-terminal session; a 10-500 character reason is required."""
        self.log_operation("cancel_session", actor_id=actor.id, session_id=session_id)
        cleaned = self._clean_reason(reason, "Cancellation reason")

        def attempt() -> TeachingSession:
            now = self._now()
            session = self._load_session(session_id)
            self._authorize(SessionOperation.CANCEL, actor, session)
            transition = require_transition(session.status, SessionAction.CANCEL)

            session.status = transition.new.value
            session.cancelled_by_id = actor.id
            session.cancelled_at = now
            session.cancellation_reason = cleaned
            self.session_repository.add_history(
                session,
                transition.history_action,
                performed_by_id=actor.id,
                performed_at=now,
                previous_status=transition.previous.value if transition.previous else None,
                new_status=transition.new.value,
                notes=cleaned,
            )
            self._flush_and_claim({})
            return session

        session = self._run_write("cancel_session", attempt)
        self._after_commit(
            HistoryAction.CANCELLED, SessionEvent.CANCELLED, session, actor.id, reason=cleaned
        )
        return session

    @BaseService.measure_operation("reschedule_session")
    def reschedule_session(
        self, actor: User, session_id: str, *, start_time: datetime, end_time: datetime
    ) -> TeachingSession:
        """
        Move a requested, accepted or scheduled session to a new interval.

        Status and meeting link are kept. A reschedule row and a
        ``rescheduled`` history entry record the previous interval.
        Student-initiated moves must respect the booking window and the
        student daily limits.
        """
        self.log_operation(
            "reschedule_session",
            actor_id=actor.id,
            session_id=session_id,
            start_time=start_time.isoformat(),
        )
        start, end = self._normalize_interval(start_time, end_time)
        new_day = self.policy_date(start)

        def attempt() -> TeachingSession:
            now = self._now()
            session = self._load_session(session_id)
            self._authorize(SessionOperation.RESCHEDULE, actor, session)
            require_reschedulable(session.status)

            by_student = actor.id == session.student_id and actor.id != session.teacher_id
            self._check_policy(start, end, now=now, booking_window=by_student)
            if start == session.start_time and end == session.end_time:
                raise ValidationException(
                    "The new time is the same as the current time", code="RESCHEDULE_NO_CHANGE"
                )

            old_day = session.session_date
            participants = session.participant_ids()
            keys = [(p, new_day) for p in participants]
            if old_day != new_day:
                keys += [(p, old_day) for p in participants]
            versions = self.calendar_repository.read_versions(keys)

            if old_day != new_day and session.teacher_id:
                if self.conflict_checker.teacher_at_daily_cap(
                    session.teacher_id,
                    new_day,
                    self.config.teacher_max_sessions_per_day,
                    exclude_session_id=session.id,
                ):
                    raise PolicyViolationException(
                        "teacher_daily_limit",
                        "The teacher has no more sessions available on that day",
                    )
            if by_student and session.student_id:
                self._check_student_limits(
                    session.student_id, new_day, session.subject_id, exclude_session_id=session.id
                )
            self._raise_on_conflict(
                self.conflict_checker.find_conflict(
                    start,
                    end,
                    teacher_id=session.teacher_id,
                    student_id=session.student_id,
                    exclude_session_id=session.id,
                )
            )

            previous_start, previous_end = session.start_time, session.end_time
            session.start_time = start
            session.end_time = end
            session.session_date = new_day
            self.session_repository.add_reschedule(
                session,
                previous_start=previous_start,
                previous_end=previous_end,
                rescheduled_by_id=actor.id,
                rescheduled_at=now,
            )
            self.session_repository.add_history(
                session,
                HistoryAction.RESCHEDULED,
                performed_by_id=actor.id,
                performed_at=now,
                previous_status=session.status,
                new_status=session.status,
                changes={
                    "previous_start_time": previous_start.isoformat(),
                    "previous_end_time": previous_end.isoformat(),
                    "new_start_time": start.isoformat(),
                    "new_end_time": end.isoformat(),
                },
            )
            self._flush_and_claim(versions)
            return session

        session = self._run_write("reschedule_session", attempt)
        self._after_commit(
            HistoryAction.RESCHEDULED, SessionEvent.RESCHEDULED, session, actor.id
        )
        return session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @BaseService.measure_operation("list_available_slots")
    def list_available_slots(
        self,
        actor: User,
        *,
        focus_one_id: str,
        subject_id: str,
        day: date,
        duration_minutes: Optional[int] = None,
    ) -> List[AvailableSlot]:
        """
        Free slots on ``day`` across every teacher mapped to the subject.

        Visible to the enrolled student, the program's teachers and admins.
        """
        focus_one = self._load_focus_one(focus_one_id)
        if not (
            actor.is_privileged or actor.id == focus_one.student_id or focus_one.has_teacher(actor.id)
        ):
            raise ForbiddenException("You do not have access to this Focus-One program")
        self._load_subject(subject_id)
        teacher_ids = self._mapped_teachers(focus_one, subject_id)
        return self.slot_service.list_slots_for_teachers(teacher_ids, day, duration_minutes)

    @BaseService.measure_operation("get_session")
    def get_session(self, actor: User, session_id: str) -> TeachingSession:
        """Session with history; admins also see soft-deleted sessions."""
        session = self._load_session(session_id, include_deleted=actor.is_privileged, fresh=False)
        self._authorize(SessionOperation.VIEW, actor, session)
        return session

    # ------------------------------------------------------------------
    # Soft delete / restore
    # ------------------------------------------------------------------

    @BaseService.measure_operation("soft_delete_session")
    def soft_delete_session(self, actor: User, session_id: str) -> TeachingSession:
        """Hide a session from listings and conflict checks; status is untouched."""
        self.log_operation("soft_delete_session", actor_id=actor.id, session_id=session_id)

        def attempt() -> TeachingSession:
            now = self._now()
            session = self._load_session(session_id, include_deleted=True)
            self._authorize(SessionOperation.DELETE, actor, session)
            if session.is_deleted:
                raise SessionStateException(
                    current_status=session.status, action="delete", reason="Session is already deleted"
                )
            session.deleted_at = now
            session.deleted_by_id = actor.id
            self.session_repository.add_history(
                session,
                HistoryAction.DELETED,
                performed_by_id=actor.id,
                performed_at=now,
                previous_status=session.status,
                new_status=session.status,
            )
            self._flush_and_claim({})
            return session

        session = self._run_write("soft_delete_session", attempt)
        prometheus_metrics.inc_session_transition(HistoryAction.DELETED.value)
        return session

    @BaseService.measure_operation("restore_session")
    def restore_session(self, actor: User, session_id: str) -> TeachingSession:
        """
        Undo a soft delete. Status is untouched; an active session must not
        overlap anything booked while it was deleted.
        """
        self.log_operation("restore_session", actor_id=actor.id, session_id=session_id)

        def attempt() -> TeachingSession:
            now = self._now()
            session = self._load_session(session_id, include_deleted=True)
            self._authorize(SessionOperation.RESTORE, actor, session)
            if not session.is_deleted:
                raise SessionStateException(
                    current_status=session.status, action="restore", reason="Session is not deleted"
                )

            versions: Dict[CalendarKey, Optional[int]] = {}
            if is_active_status(session.status):
                versions = self.calendar_repository.read_versions(
                    (p, session.session_date) for p in session.participant_ids()
                )
                self._raise_on_conflict(
                    self.conflict_checker.find_conflict(
                        session.start_time,
                        session.end_time,
                        teacher_id=session.teacher_id,
                        student_id=session.student_id,
                        exclude_session_id=session.id,
                    )
                )

            session.deleted_at = None
            session.deleted_by_id = None
            self.session_repository.add_history(
                session,
                HistoryAction.RESTORED,
                performed_by_id=actor.id,
                performed_at=now,
                previous_status=session.status,
                new_status=session.status,
            )
            self._flush_and_claim(versions)
            return session

        session = self._run_write("restore_session", attempt)
        prometheus_metrics.inc_session_transition(HistoryAction.RESTORED.value)
        return session

    # ------------------------------------------------------------------
    # Write arbitration
    # ------------------------------------------------------------------

    def _run_write(self, operation: str, attempt: Callable[[], TeachingSession]) -> TeachingSession:
        """
        Run ``attempt`` in a transaction, retrying on lost version races.

        Raises:
            StorageContentionException: every attempt lost
        """
        max_attempts = self.config.booking_write_max_attempts
        for attempt_number in range(1, max_attempts + 1):
            try:
                with self.transaction():
                    return attempt()
            except _WriteContention:
                if attempt_number < max_attempts:
                    prometheus_metrics.inc_write_retry("retried")
                    self.logger.info(
                        f"{operation}: concurrent write detected, retrying "
                        f"(attempt {attempt_number}/{max_attempts})"
                    )
                    continue
                prometheus_metrics.inc_write_retry("exhausted")
                self.logger.warning(f"{operation}: giving up after {max_attempts} attempts")
        raise StorageContentionException(attempts=max_attempts)

    def _flush_and_claim(self, versions: Dict[CalendarKey, Optional[int]]) -> None:
        """
        Flush pending changes, then bump every calendar version read earlier.

        Translates storage-level outcomes: overlap constraints become
        SessionConflictException, lost races become _WriteContention.
        """
        try:
            self.session_repository.flush()
        except IntegrityError as exc:
            message, scope = self._resolve_integrity_conflict_message(exc)
            if scope is None:
                raise
            raise SessionConflictException(message, details={"scope": scope}) from exc
        except StaleDataError as exc:
            raise _WriteContention() from exc
        except OperationalError as exc:
            if self._is_contention_error(exc):
                raise _WriteContention() from exc
            raise

        now = self._now()
        for key in sorted(versions):
            try:
                claimed = self.calendar_repository.compare_and_bump(key, versions[key], now)
            except OperationalError as exc:
                if self._is_contention_error(exc):
                    raise _WriteContention() from exc
                raise
            if not claimed:
                raise _WriteContention()

    @staticmethod
    def _claims(
        versions: Dict[CalendarKey, Optional[int]], participant_ids: Iterable[Optional[str]], day: date
    ) -> Dict[CalendarKey, Optional[int]]:
        """Versions of the participants that end up on the session."""
        return {(pid, day): versions.get((pid, day)) for pid in participant_ids if pid}

    def _resolve_integrity_conflict_message(
        self, integrity_error: IntegrityError
    ) -> Tuple[str, Optional[str]]:
        """
        Determine the conflict message and scope from a database IntegrityError.
        """
        constraint_name: str = ""
        orig = getattr(integrity_error, "orig", None)
        diag = getattr(orig, "diag", None)

        if diag is not None:
            constraint_name = getattr(diag, "constraint_name", "") or ""

        if not constraint_name and orig is not None:
            text = str(orig)
            if TEACHER_OVERLAP_CONSTRAINT in text:
                constraint_name = TEACHER_OVERLAP_CONSTRAINT
            elif STUDENT_OVERLAP_CONSTRAINT in text:
                constraint_name = STUDENT_OVERLAP_CONSTRAINT

        if constraint_name == TEACHER_OVERLAP_CONSTRAINT:
            return TEACHER_CONFLICT_MESSAGE, "teacher"
        if constraint_name == STUDENT_OVERLAP_CONSTRAINT:
            return STUDENT_CONFLICT_MESSAGE, "student"

        return GENERIC_CONFLICT_MESSAGE, None

    @staticmethod
    def _is_contention_error(exc: OperationalError) -> bool:
        orig = getattr(exc, "orig", None)
        sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if sqlstate in _CONTENTION_SQLSTATES:
            return True
        message = str(exc).lower()
        return "database is locked" in message or "deadlock detected" in message

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return ensure_utc(self.clock.now())

    def policy_date(self, moment: datetime) -> date:
        """Operating-timezone date of ``moment``."""
        return ensure_utc(moment).astimezone(self.policy.tz).date()

    @staticmethod
    def _enforce(decision: PolicyDecision) -> None:
        if not decision.bookable:
            rule = decision.rule.value if decision.rule else "calendar"
            raise PolicyViolationException(rule, decision.message or "Time is not bookable")

    def _check_policy(
        self, start: datetime, end: datetime, *, now: datetime, booking_window: bool
    ) -> None:
        """Calendar rules for an interval; holidays are looked up first."""
        is_holiday = self.holiday_repository.is_holiday(self.policy_date(start))
        self._enforce(self.policy.check_interval(start, end, is_holiday))
        if booking_window:
            self._enforce(self.policy.check_booking_window(start, now))
        else:
            self._enforce(self.policy.check_not_past(start, now))

    @staticmethod
    def _normalize_interval(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
        if start.tzinfo is None or end.tzinfo is None:
            raise ValidationException(
                "start_time and end_time must include a timezone offset",
                code="NAIVE_DATETIME",
            )
        return ensure_utc(start), ensure_utc(end)

    @staticmethod
    def _clean_reason(reason: Optional[str], label: str) -> str:
        cleaned = (reason or "").strip()
        if not MIN_REASON_LENGTH <= len(cleaned) <= MAX_REASON_LENGTH:
            raise ValidationException(
                f"{label} must be between {MIN_REASON_LENGTH} and {MAX_REASON_LENGTH} characters",
                code="INVALID_REASON",
                details={"length": len(cleaned)},
            )
        return cleaned

    def _resolve_title(self, title: Optional[str], subject: Optional[Subject], start: datetime) -> str:
        if title and title.strip():
            return title.strip()[:MAX_TITLE_LENGTH]
        prefix = f"{subject.name} Session" if subject is not None else "Session"
        return f"{prefix} - {format_session_moment(start, self.policy.tz)}"[:MAX_TITLE_LENGTH]

    def _check_student_limits(
        self,
        student_id: str,
        day: date,
        subject_id: Optional[str],
        exclude_session_id: Optional[str] = None,
    ) -> None:
        repository = self.conflict_checker.repository
        daily = repository.count_student_sessions_for_date(
            student_id, day, exclude_session_id=exclude_session_id
        )
        if daily >= self.config.student_max_sessions_per_day:
            raise PolicyViolationException(
                "student_daily_limit",
                f"You can have at most {self.config.student_max_sessions_per_day} sessions per day",
            )
        if subject_id:
            per_subject = repository.count_student_sessions_for_date(
                student_id, day, subject_id=subject_id, exclude_session_id=exclude_session_id
            )
            if per_subject >= self.config.student_max_sessions_per_subject_per_day:
                raise PolicyViolationException(
                    "student_subject_daily_limit",
                    "You already have a session for this subject on that day",
                )

    def _pick_teacher(
        self, teacher_ids: Sequence[str], start: datetime, end: datetime, day: date
    ) -> str:
        """First mapped teacher who is free and under the daily cap."""
        first_conflict: Optional[SessionConflict] = None
        for teacher_id in teacher_ids:
            if self.conflict_checker.teacher_at_daily_cap(
                teacher_id, day, self.config.teacher_max_sessions_per_day
            ):
                continue
            conflict = self.conflict_checker.find_conflict(start, end, teacher_id=teacher_id)
            if conflict is None:
                return teacher_id
            first_conflict = first_conflict or conflict

        if first_conflict is not None:
            raise SessionConflictException(
                NO_TEACHER_AVAILABLE_MESSAGE, details=first_conflict.to_exception().details
            )
        raise SessionConflictException(
            NO_TEACHER_AVAILABLE_MESSAGE, details={"scope": "teacher", "reason": "daily_limit"}
        )

    @staticmethod
    def _raise_on_conflict(conflict: Optional[SessionConflict]) -> None:
        if conflict is not None:
            raise conflict.to_exception()

    # ------------------------------------------------------------------
    # Loading and authorization
    # ------------------------------------------------------------------

    def _load_session(
        self, session_id: str, *, include_deleted: bool = False, fresh: bool = True
    ) -> TeachingSession:
        session = self.session_repository.get_session(
            session_id, include_deleted=include_deleted, fresh=fresh
        )
        if session is None:
            raise NotFoundException("Session not found", code="SESSION_NOT_FOUND")
        return session

    def _load_focus_one(self, focus_one_id: str) -> FocusOne:
        focus_one = self.enrollment_repository.get_focus_one(focus_one_id)
        if focus_one is None:
            raise NotFoundException("Focus-One program not found", code="FOCUS_ONE_NOT_FOUND")
        return focus_one

    def _load_cohort(self, cohort_id: str) -> Cohort:
        cohort = self.enrollment_repository.get_cohort(cohort_id)
        if cohort is None:
            raise NotFoundException("Cohort not found", code="COHORT_NOT_FOUND")
        return cohort

    def _load_subject(self, subject_id: str) -> Subject:
        subject = self.subject_repository.find_one_by(id=subject_id, is_active=True)
        if subject is None:
            raise NotFoundException("Subject not found", code="SUBJECT_NOT_FOUND")
        return subject

    @staticmethod
    def _ensure_program_active(program: "FocusOne | Cohort") -> None:
        if not program.accepts_sessions:
            raise ValidationException(
                "This program is not accepting sessions",
                code="PROGRAM_INACTIVE",
                details={"program_id": program.id, "status": program.status},
            )

    @staticmethod
    def _mapped_teachers(focus_one: FocusOne, subject_id: str) -> List[str]:
        teacher_ids = focus_one.teacher_ids_for_subject(subject_id)
        if not teacher_ids:
            raise ValidationException(
                "No teacher is assigned to this subject in the Focus-One program",
                code="SUBJECT_NOT_MAPPED",
                details={"focus_one_id": focus_one.id, "subject_id": subject_id},
            )
        return teacher_ids

    @staticmethod
    def _program_ref(focus_one_id: Optional[str], cohort_id: Optional[str]) -> ProgramRef:
        if bool(focus_one_id) == bool(cohort_id):
            raise ValidationException(
                "Provide exactly one of focus_one_id or cohort_id", code="INVALID_PROGRAM"
            )
        if focus_one_id:
            return FocusOneRef(focus_one_id)
        return CohortRef(cohort_id or "")

    def _resolve_scheduling_teacher(self, actor: User, teacher_id: Optional[str]) -> User:
        if teacher_id is None:
            if not actor.is_teacher:
                raise ValidationException(
                    "teacher_id is required when an admin schedules a session",
                    code="TEACHER_REQUIRED",
                )
            teacher_id = actor.id
        elif teacher_id != actor.id and not actor.is_privileged:
            raise ForbiddenException("Teachers can only schedule their own sessions")

        teacher = actor if teacher_id == actor.id else self.user_repository.get_active_user(teacher_id)
        if teacher is None or not teacher.is_teacher:
            raise NotFoundException("Teacher not found", code="TEACHER_NOT_FOUND")
        return teacher

    @staticmethod
    def _authorize(operation: SessionOperation, actor: User, session: TeachingSession) -> None:
        relations = session_relations(
            actor.id,
            is_privileged=actor.is_privileged,
            teacher_id=session.teacher_id,
            student_id=session.student_id,
        )
        if not is_authorized(operation, relations):
            raise ForbiddenException(
                f"You are not allowed to {operation.value.replace('_', ' ')} this session",
                details={"operation": operation.value},
            )

    # ------------------------------------------------------------------
    # Post-commit
    # ------------------------------------------------------------------

    def _after_commit(
        self,
        history_action: HistoryAction,
        event: SessionEvent,
        session: TeachingSession,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> None:
        prometheus_metrics.inc_session_transition(history_action.value)
        if self.notification_service is None:
            return
        try:
            self.notification_service.notify(event, session, actor_id, reason=reason)
        except Exception as e:
            self.logger.error(f"Notification for session {session.id} failed: {str(e)}")
