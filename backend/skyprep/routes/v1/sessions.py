# backend/skyprep/routes/v1/sessions.py
"""
Teaching session routes - API v1

Versioned session endpoints under /api/v1/sessions.
All business logic delegated to SessionBookingService; the service is
synchronous, so every call runs in a worker thread.

Endpoints:
    POST /request - Student requests a Focus-One session
    POST /teacher-schedule - Teacher/admin schedules a session directly
    GET /available-slots - Free slots for a Focus-One subject on a date
    GET /{session_id} - Session with history and reschedules
    DELETE /{session_id} - Soft delete (admin)
    POST /{session_id}/accept - Accept a requested session
    POST /{session_id}/reject - Reject a requested session
    POST /{session_id}/cancel - Cancel a session
    POST /{session_id}/reschedule - Move a session to a new interval
    POST /{session_id}/restore - Restore a soft-deleted session (admin)
"""

import asyncio
from datetime import date
import logging
from typing import Any, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import get_current_user, get_session_booking_service
from ...core.exceptions import DomainException
from ...core.ulid_helper import ULID_PATTERN
from ...models.session import TeachingSession
from ...models.user import User
from ...schemas.session import (
    AvailableSlotResponse,
    AvailableSlotsResponse,
    SessionAccept,
    SessionReason,
    SessionRequestCreate,
    SessionReschedule,
    SessionResponse,
    TeacherScheduleCreate,
)
from ...services.session_booking_service import SessionBookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["sessions-v1"])

ULID_PATH_PATTERN = ULID_PATTERN


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _session_path() -> Any:
    return Path(
        ...,
        description="Session ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    )


def _to_response(session: TeachingSession) -> SessionResponse:
    return SessionResponse.model_validate(session)


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.post(
    "/request",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "No teacher free or student busy"}},
)
async def request_session(
    payload: SessionRequestCreate = Body(...),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Request a Focus-One session; the first free mapped teacher is bound to it."""

    def _create() -> SessionResponse:
        session = booking_service.request_session(
            current_user,
            start_time=payload.start_time,
            end_time=payload.end_time,
            focus_one_id=payload.focus_one_id,
            subject_id=payload.subject_id,
            title=payload.title,
            description=payload.description,
        )
        return _to_response(session)

    try:
        return await asyncio.to_thread(_create)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/teacher-schedule",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Time conflict"}},
)
async def teacher_schedule_session(
    payload: TeacherScheduleCreate = Body(...),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Schedule a session directly for a Focus-One or a Cohort."""

    def _create() -> SessionResponse:
        session = booking_service.teacher_schedule_session(
            current_user,
            start_time=payload.start_time,
            end_time=payload.end_time,
            title=payload.title,
            description=payload.description,
            focus_one_id=payload.focus_one_id,
            cohort_id=payload.cohort_id,
            subject_id=payload.subject_id,
            teacher_id=payload.teacher_id,
        )
        return _to_response(session)

    try:
        return await asyncio.to_thread(_create)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/available-slots", response_model=AvailableSlotsResponse)
async def list_available_slots(
    focus_one_id: str = Query(..., min_length=1),
    subject_id: str = Query(..., min_length=1),
    day: date = Query(..., alias="date", description="Calendar date in the operating time zone"),
    duration: Optional[int] = Query(None, description="Slot length in minutes"),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> AvailableSlotsResponse:
    """List free slots across every teacher mapped to the subject."""

    def _list() -> AvailableSlotsResponse:
        duration_minutes = int(
            booking_service.slot_service.resolve_duration(duration).total_seconds() // 60
        )
        slots = booking_service.list_available_slots(
            current_user,
            focus_one_id=focus_one_id,
            subject_id=subject_id,
            day=day,
            duration_minutes=duration_minutes,
        )
        return AvailableSlotsResponse(
            focus_one_id=focus_one_id,
            subject_id=subject_id,
            date=day,
            duration_minutes=duration_minutes,
            slots=[
                AvailableSlotResponse(
                    start_time=slot.start, end_time=slot.end, teacher_ids=slot.teacher_ids
                )
                for slot in slots
            ],
        )

    try:
        return await asyncio.to_thread(_list)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Session routes
# ============================================================================


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}},
)
async def get_session(
    session_id: str = _session_path(),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Full session details."""
    try:
        return await asyncio.to_thread(
            lambda: _to_response(booking_service.get_session(current_user, session_id))
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{session_id}",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}},
)
async def delete_session(
    session_id: str = _session_path(),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Soft delete a session. Admins only."""
    try:
        return await asyncio.to_thread(
            lambda: _to_response(booking_service.soft_delete_session(current_user, session_id))
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{session_id}/accept",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}, 409: {"description": "Time conflict"}},
)
async def accept_request(
    session_id: str = _session_path(),
    payload: Optional[SessionAccept] = Body(None),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Accept a requested session; it ends up scheduled with a meeting link."""
    accept = payload or SessionAccept()

    def _accept() -> SessionResponse:
        session = booking_service.accept_request(
            current_user,
            session_id,
            meeting_link=accept.meeting_link,
            meeting_platform=accept.meeting_platform,
        )
        return _to_response(session)

    try:
        return await asyncio.to_thread(_accept)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{session_id}/reject",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}},
)
async def reject_request(
    session_id: str = _session_path(),
    payload: SessionReason = Body(...),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Reject a requested session."""
    try:
        return await asyncio.to_thread(
            lambda: _to_response(
                booking_service.reject_request(current_user, session_id, payload.reason)
            )
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{session_id}/cancel",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}},
)
async def cancel_session(
    session_id: str = _session_path(),
    payload: SessionReason = Body(...),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Cancel a requested or scheduled session."""
    try:
        return await asyncio.to_thread(
            lambda: _to_response(
                booking_service.cancel_session(current_user, session_id, payload.reason)
            )
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{session_id}/reschedule",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}, 409: {"description": "Time conflict"}},
)
async def reschedule_session(
    session_id: str = _session_path(),
    payload: SessionReschedule = Body(...),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Move a session to a new interval, keeping its participants."""

    def _reschedule() -> SessionResponse:
        session = booking_service.reschedule_session(
            current_user,
            session_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
        )
        return _to_response(session)

    try:
        return await asyncio.to_thread(_reschedule)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{session_id}/restore",
    response_model=SessionResponse,
    responses={404: {"description": "Session not found"}, 409: {"description": "Time conflict"}},
)
async def restore_session(
    session_id: str = _session_path(),
    current_user: User = Depends(get_current_user),
    booking_service: SessionBookingService = Depends(get_session_booking_service),
) -> SessionResponse:
    """Restore a soft-deleted session. Admins only."""
    try:
        return await asyncio.to_thread(
            lambda: _to_response(booking_service.restore_session(current_user, session_id))
        )
    except DomainException as e:
        handle_domain_exception(e)
