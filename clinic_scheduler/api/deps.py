from fastapi import HTTPException, Query, status

from clinic_scheduler.core.db import get_session
from clinic_scheduler.models.resource import ResourceKind
from clinic_scheduler.services.errors import (
    AppointmentNotFoundError,
    BookingError,
    BookingValidationError,
    SlotUnavailableError,
)
from clinic_scheduler.services.resource_families import ResourceFamily, get_family

__all__ = ["get_session", "family_param", "booking_http_error"]


def family_param(kind: ResourceKind = Query(..., description="Resource family")) -> ResourceFamily:
    return get_family(kind)


def booking_http_error(exc: BookingError) -> HTTPException:
    """Map a booking exception to the HTTP error the client sees."""
    if isinstance(exc, AppointmentNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, SlotUnavailableError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, BookingValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=exc.message)
