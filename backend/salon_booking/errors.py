"""
Booking error taxonomy

Every rule violation raised inside the booking core is a BookingError.
Mutators turn them into failed BookingResult objects; the HTTP layer maps
them to status codes.
"""


class BookingError(Exception):
    """Base class of all booking errors"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def error_type(self) -> str:
        return type(self).__name__


class ValidationError(BookingError):
    """Malformed or missing input, unknown employee/service"""
    status_code = 400


class AvailabilityError(BookingError):
    """Day off, outside working hours or slot already occupied"""
    status_code = 409


class AuthorizationError(BookingError):
    """Actor lacks permission for the operation"""
    status_code = 403


class NotFoundError(BookingError):
    """Unknown identifier"""
    status_code = 404


class StorageError(BookingError):
    """Persistence backend failure"""
    status_code = 503


def status_code_for(error_type: str) -> int:
    """HTTP status for a BookingResult.error_type"""
    for cls in (ValidationError, AvailabilityError, AuthorizationError, NotFoundError, StorageError):
        if cls.__name__ == error_type:
            return cls.status_code
    return BookingError.status_code
