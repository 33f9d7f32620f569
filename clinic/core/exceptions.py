"""
Domain errors raised by the scheduling core.

Services raise these instead of transport-specific exceptions; the
application registers a handler that renders them as JSON responses.
"""
from fastapi import status


class ClinicError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal Server Error"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(ClinicError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"
    default_message = "Invalid or expired token"


class NotFound(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"
    default_message = "The requested resource was not found"


class ValidationError(ClinicError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Validation Error"
    default_message = "Invalid input"


class Conflict(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"
    default_message = "The request conflicts with the current state"


class SlotUnavailable(Conflict):
    default_message = "Appointment time unavailable"


class InvalidTransition(Conflict):
    error = "Invalid Transition"
    default_message = "Appointment status does not allow this change"


class InternalError(ClinicError):
    """Opaque failure; details are logged, never returned."""


class RateLimited(ClinicError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "Too Many Requests"
    default_message = "Too many requests. Please try again later."
