# backend/skyprep/schemas/session.py
"""
Session schemas for the SkyPrep session backend.

Request bodies carry aware ISO-8601 timestamps; naive values are rejected
so the operating time zone never has to be guessed. Responses are built
from ORM objects with ``from_attributes``.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_REASON_LENGTH,
    MAX_TITLE_LENGTH,
    MIN_REASON_LENGTH,
)
from ..core.enums import MeetingPlatform
from ._strict_base import StandardizedModel, StrictRequestModel


def _require_aware(value: datetime, field_name: str) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError(f"{field_name} must include a timezone offset")
    return value


class _IntervalRequest(StrictRequestModel):
    start_time: datetime = Field(..., description="Session start (ISO-8601 with offset)")
    end_time: datetime = Field(..., description="Session end (ISO-8601 with offset)")

    @field_validator("start_time", "end_time")
    @classmethod
    def _aware(cls, value: datetime, info: Any) -> datetime:
        return _require_aware(value, info.field_name)

    @model_validator(mode="after")
    def _ordered(self) -> "_IntervalRequest":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SessionRequestCreate(_IntervalRequest):
    """Student request for a Focus-One session."""

    focus_one_id: str = Field(..., min_length=1)
    subject_id: str = Field(..., min_length=1)
    title: Optional[str] = Field(None, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)


class TeacherScheduleCreate(_IntervalRequest):
    """Direct scheduling by a teacher or admin."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    focus_one_id: Optional[str] = None
    cohort_id: Optional[str] = None
    subject_id: Optional[str] = None
    teacher_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title cannot be blank")
        return value.strip()

    @model_validator(mode="after")
    def _single_program(self) -> "TeacherScheduleCreate":
        if bool(self.focus_one_id) == bool(self.cohort_id):
            raise ValueError("Provide exactly one of focus_one_id or cohort_id")
        return self


class SessionReschedule(_IntervalRequest):
    pass


class SessionAccept(StrictRequestModel):
    meeting_link: Optional[str] = Field(None, max_length=500)
    meeting_platform: Optional[MeetingPlatform] = None

    @field_validator("meeting_link")
    @classmethod
    def _https_link(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value.startswith("https://"):
            raise ValueError("meeting_link must be an https URL")
        return value


class SessionReason(StrictRequestModel):
    """Reason attached to a rejection or cancellation."""

    reason: str = Field(..., description="10 to 500 characters")

    @field_validator("reason")
    @classmethod
    def _reason_length(cls, value: str) -> str:
        cleaned = value.strip()
        if not MIN_REASON_LENGTH <= len(cleaned) <= MAX_REASON_LENGTH:
            raise ValueError(
                f"reason must be between {MIN_REASON_LENGTH} and {MAX_REASON_LENGTH} characters"
            )
        return cleaned


class SessionHistoryResponse(StandardizedModel):
    id: str
    action: str
    performed_by_id: Optional[str] = None
    performed_at: datetime
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    notes: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None


class SessionRescheduleResponse(StandardizedModel):
    id: str
    previous_start_time: datetime
    previous_end_time: datetime
    new_start_time: datetime
    new_end_time: datetime
    rescheduled_by_id: str
    rescheduled_at: datetime


class SessionResponse(StandardizedModel):
    """A session with its audit trail."""

    id: str
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    session_date: date
    status: str
    teacher_id: Optional[str] = None
    student_id: Optional[str] = None
    subject_id: Optional[str] = None
    focus_one_id: Optional[str] = None
    cohort_id: Optional[str] = None
    meeting_link: Optional[str] = None
    meeting_platform: Optional[str] = None
    created_by_id: Optional[str] = None
    requested_by_id: Optional[str] = None
    requested_at: Optional[datetime] = None
    accepted_by_id: Optional[str] = None
    accepted_at: Optional[datetime] = None
    rejected_by_id: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_by_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    history: List[SessionHistoryResponse] = Field(default_factory=list)
    reschedules: List[SessionRescheduleResponse] = Field(default_factory=list)


class AvailableSlotResponse(StandardizedModel):
    start_time: datetime
    end_time: datetime
    teacher_ids: List[str]


class AvailableSlotsResponse(StandardizedModel):
    focus_one_id: str
    subject_id: str
    date: date
    duration_minutes: int
    slots: List[AvailableSlotResponse]
