# backend/skyprep/services/slot_availability.py
"""
Slot Availability Service for the SkyPrep session backend.

Lists the fixed-length slots a teacher can still take on a date:

    open interval (calendar policy)
      minus every active session of the teacher (no buffer)
      sliced into consecutive ``duration`` pieces
      starting no later than the day's latest start

Slots are computed on demand and never stored. A listing is only a hint;
the booking service re-checks everything when a slot is actually taken.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.constants import MAX_SLOT_DURATION_MINUTES
from ..core.exceptions import ValidationException
from ..domain.calendar_policy import CalendarPolicy
from ..domain.intervals import Slot, SlotSequence
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..repositories.holiday_repository import HolidayRepository
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class AvailableSlot:
    """A slot with every teacher free for it, in mapping order."""

    start: datetime
    end: datetime
    teacher_ids: List[str] = field(default_factory=list)


class SlotAvailabilityService(BaseService):
    def __init__(
        self,
        db: Session,
        policy: Optional[CalendarPolicy] = None,
        conflict_repository: Optional[ConflictCheckerRepository] = None,
        holiday_repository: Optional[HolidayRepository] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.policy = policy or CalendarPolicy.from_settings(self.config)
        self.conflict_repository = (
            conflict_repository or RepositoryFactory.create_conflict_checker_repository(db)
        )
        self.holiday_repository = holiday_repository or RepositoryFactory.create_holiday_repository(db)

    def resolve_duration(self, duration_minutes: Optional[int]) -> timedelta:
        """Validate a requested slot length, falling back to the default."""
        minutes = (
            self.config.default_session_duration_minutes
            if duration_minutes is None
            else duration_minutes
        )
        if minutes <= 0:
            raise ValidationException(
                "Slot duration must be a positive number of minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": minutes},
            )
        if minutes > MAX_SLOT_DURATION_MINUTES:
            raise ValidationException(
                f"Slot duration cannot exceed {MAX_SLOT_DURATION_MINUTES} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": minutes},
            )
        return timedelta(minutes=minutes)

    def teacher_slot_sequence(
        self, teacher_id: str, day: date, duration: timedelta
    ) -> Optional[SlotSequence]:
        """
        Lazy slot sequence for one teacher and date.

        Returns None when the day is closed or the teacher is at the daily cap.
        """
        window = self.policy.open_interval(day, self.holiday_repository.is_holiday(day))
        if window is None:
            return None

        sessions = self.conflict_repository.get_teacher_sessions_for_date(teacher_id, day)
        if len(sessions) >= self.config.teacher_max_sessions_per_day:
            self.logger.debug(f"Teacher {teacher_id} is at the daily session cap on {day}")
            return None

        busy = [(s.start_time, s.end_time) for s in sessions]
        return SlotSequence(
            (window.start, window.end),
            busy,
            duration,
            tz=self.policy.tz,
            latest_start=self.policy.latest_start(day),
        )

    @BaseService.measure_operation("list_teacher_slots")
    def list_teacher_slots(
        self, teacher_id: str, day: date, duration_minutes: Optional[int] = None
    ) -> List[Slot]:
        """
        Free slots of one teacher on ``day``, chronological.

        Sundays, holidays and teachers at their daily cap yield an empty list.
        """
        duration = self.resolve_duration(duration_minutes)
        sequence = self.teacher_slot_sequence(teacher_id, day, duration)
        if sequence is None:
            return []
        return list(sequence)

    @BaseService.measure_operation("list_slots_for_teachers")
    def list_slots_for_teachers(
        self, teacher_ids: Sequence[str], day: date, duration_minutes: Optional[int] = None
    ) -> List[AvailableSlot]:
        """
        Merge the slots of several teachers.

        Slots are deduplicated by start time and annotated with the teachers
        free for them, keeping ``teacher_ids`` order.
        """
        duration = self.resolve_duration(duration_minutes)
        if self.policy.open_interval(day, self.holiday_repository.is_holiday(day)) is None:
            return []

        merged: Dict[datetime, AvailableSlot] = {}
        for teacher_id in teacher_ids:
            sequence = self.teacher_slot_sequence(teacher_id, day, duration)
            if sequence is None:
                continue
            for slot in sequence:
                entry = merged.get(slot.start)
                if entry is None:
                    merged[slot.start] = AvailableSlot(slot.start, slot.end, [teacher_id])
                elif teacher_id not in entry.teacher_ids:
                    entry.teacher_ids.append(teacher_id)

        return [merged[start] for start in sorted(merged)]
