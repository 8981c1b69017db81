# backend/skyprep/core/exceptions.py
"""
Domain-specific exceptions for the SkyPrep session backend.

Services raise these; the API layer converts them with
``to_http_exception()`` so callers can tell a validation failure from a
booking conflict, a missing record, a permission problem or an illegal
status change.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        """Convert to HTTPException using the class status code."""
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class PolicyViolationException(ValidationException):
    """Raised when an interval falls outside the bookable calendar."""

    def __init__(self, rule: str, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="CALENDAR_POLICY_VIOLATION",
            details={"rule": rule, **(details or {})},
        )
        self.rule = rule


class SessionConflictException(ConflictException):
    """Raised when a session overlaps an active session of the same participant."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing session",
            code="SESSION_CONFLICT",
            details=details or {},
        )


class SessionStateException(ConflictException):
    """Raised when a transition is not legal from the session's current status."""

    def __init__(self, current_status: str, action: str, reason: str):
        super().__init__(
            message=reason,
            code="INVALID_SESSION_TRANSITION",
            details={"current_status": current_status, "action": action},
        )
        self.current_status = current_status
        self.action = action


class StorageContentionException(DomainException):
    """Raised when the conditional write keeps losing to concurrent writers."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, attempts: int):
        super().__init__(
            message="The schedule changed while saving. Please re-check availability and retry.",
            code="STORAGE_CONTENTION",
            details={"attempts": attempts},
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail=self.to_dict(),
            headers={"Retry-After": "1"},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
