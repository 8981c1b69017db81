# backend/skyprep/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging
from typing import Union

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.clock import Clock, SystemClock
from ...core.config import settings
from ...services.email import EmailService
from ...services.email_console import ConsoleEmailService
from ...services.notification_service import NotificationService
from ...services.session_booking_service import SessionBookingService
from .database import get_db

logger = logging.getLogger(__name__)

_system_clock = SystemClock()


def get_clock() -> Clock:
    """Source of "now" for request handling; tests override this dependency."""
    return _system_clock


def get_email_service(db: Session = Depends(get_db)) -> Union[EmailService, ConsoleEmailService]:
    """Get the configured email sender (console in development, Resend otherwise)."""
    if settings.email_provider == "resend":
        return EmailService(db)
    return ConsoleEmailService()


def get_notification_service(
    db: Session = Depends(get_db),
    email_service: Union[EmailService, ConsoleEmailService] = Depends(get_email_service),
) -> NotificationService:
    """
    Get notification service instance.

    Args:
        db: Database session
        email_service: Email service for sending emails

    Returns:
        NotificationService instance
    """
    return NotificationService(db, email_service)


def get_session_booking_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
    clock: Clock = Depends(get_clock),
) -> SessionBookingService:
    """
    Get session booking service instance with all dependencies.

    Args:
        db: Database session
        notification_service: Notification service for participant emails
        clock: Clock used for booking-window and past-time checks

    Returns:
        SessionBookingService instance
    """
    return SessionBookingService(db, notification_service, clock=clock)
