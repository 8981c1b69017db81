# backend/skyprep/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_user
from .database import get_db
from .services import (
    get_clock,
    get_email_service,
    get_notification_service,
    get_session_booking_service,
)

__all__ = [
    # Auth
    "get_current_user",
    # Database
    "get_db",
    # Services
    "get_clock",
    "get_email_service",
    "get_notification_service",
    "get_session_booking_service",
]
