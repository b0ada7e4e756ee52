# barbershop/errors.py
"""
Domain errors raised by the booking core.

Every core operation either returns its result or raises exactly one of
these. The API layer renders them as ``{"detail": ..., "code": ...}``.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class BookingError(Exception):
    """Base class for all booking domain errors."""

    code = "booking_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFound(BookingError):
    """Barber, service or reservation is absent or inactive."""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(BookingError):
    """The requested interval overlaps an active reservation."""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class InvalidState(BookingError):
    """Transition attempted from a terminal or disallowed state."""

    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class PermissionDenied(BookingError):
    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class ValidationError(BookingError):
    code = "validation_error"
    status_code = 422


class LeadTimeViolation(BookingError):
    """Cancellation requested too close to the appointment start."""

    code = "lead_time"
    status_code = 422


class PaymentUnavailable(BookingError):
    code = "payment_unavailable"
    status_code = status.HTTP_502_BAD_GATEWAY


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )
