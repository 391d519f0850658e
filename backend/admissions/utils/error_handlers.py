"""
Centralized error handling and user-friendly error messages.
"""
import logging

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing required input."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    """Resource not found error."""
    def __init__(self, message: str = "Resource not found", details: dict | None = None):
        super().__init__(message, status_code=404, details=details)


class ConflictError(AppError):
    """Concurrent modification or duplicate record."""
    def __init__(self, message: str = "Conflicting update", details: dict | None = None):
        super().__init__(message, status_code=409, details=details)


class InvalidTransitionError(AppError):
    """Lifecycle transition not allowed from the current status."""
    def __init__(self, current: str, requested: str, allowed):
        self.current = str(current)
        self.requested = str(requested)
        self.allowed = sorted(str(s) for s in (allowed or []))
        allowed_txt = ", ".join(self.allowed) if self.allowed else "none"
        super().__init__(
            f"Cannot move application from '{self.current}' to '{self.requested}' (allowed: {allowed_txt})",
            status_code=409,
            details={"current": self.current, "requested": self.requested, "allowed": self.allowed},
        )


# User-friendly error messages
ERROR_MESSAGES = {
    # Applications
    "application_not_found": "Application not found.",
    "already_applied": "An application for this program already exists for this applicant.",
    "application_changed": "Application was modified by another action. Reload and try again.",

    # Criteria / merit lists
    "criteria_not_found": "No active eligibility criteria for this program.",
    "merit_list_not_found": "No merit list has been generated for this program, batch and semester.",
    "interview_not_required": "This program does not require an interview.",

    # General
    "not_found": "The requested resource was not found.",
    "server_error": "Something went wrong on our end. Please try again later.",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def create_error_response(
    status_code: int,
    message: str,
    details: dict | None = None
) -> JSONResponse:
    """Create a standardized error response."""
    content = {
        "success": False,
        "error": message,
    }

    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )
