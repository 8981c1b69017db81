"""Pydantic request/response models for the SkyPrep API."""

from .session import (
    AvailableSlotResponse,
    AvailableSlotsResponse,
    SessionAccept,
    SessionHistoryResponse,
    SessionReason,
    SessionRequestCreate,
    SessionReschedule,
    SessionRescheduleResponse,
    SessionResponse,
    TeacherScheduleCreate,
)

__all__ = [
    "AvailableSlotResponse",
    "AvailableSlotsResponse",
    "SessionAccept",
    "SessionHistoryResponse",
    "SessionReason",
    "SessionRequestCreate",
    "SessionReschedule",
    "SessionRescheduleResponse",
    "SessionResponse",
    "TeacherScheduleCreate",
]
