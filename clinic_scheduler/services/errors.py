class BookingError(Exception):
    """Base exception for appointment operations."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BookingValidationError(BookingError):
    """Raised before any write when the request is incomplete or inconsistent."""


class ClosingTimeError(BookingValidationError):
    """Raised when a session would end at or after closing time."""


class NoResourceAvailableError(BookingValidationError):
    """Raised when no unit was chosen and none is free."""


class SlotUnavailableError(BookingError):
    """Raised when the requested slot overlaps an existing booking."""


class AppointmentNotFoundError(BookingError):
    """Raised when an appointment cannot be located."""
