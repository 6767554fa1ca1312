from enum import StrEnum


class ErrorCode(StrEnum):
    CONFLICT = "CONFLICT"
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    DISABLED = "DISABLED"
    CAPACITY = "CAPACITY"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TOO_EARLY = "TOO_EARLY"
    UNKNOWN = "UNKNOWN"


class BookingError(Exception):
    """Base for failures reported to callers as `{success: false, error, code}`."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BookingValidationError(BookingError):
    code = ErrorCode.VALIDATION


class NotFoundError(BookingError):
    code = ErrorCode.NOT_FOUND


class ConflictError(BookingError):
    code = ErrorCode.CONFLICT


class CapacityError(BookingError):
    code = ErrorCode.CAPACITY


class UnauthorizedError(BookingError):
    code = ErrorCode.UNAUTHORIZED


class BookingsDisabledError(BookingError):
    code = ErrorCode.DISABLED


class InvalidTransitionError(BookingError):
    code = ErrorCode.INVALID_TRANSITION


class TooEarlyError(BookingError):
    code = ErrorCode.TOO_EARLY


class StoreError(BookingError):
    code = ErrorCode.UNKNOWN


class UniqueViolationError(Exception):
    """Raised by repositories when an insert hits a unique constraint."""
