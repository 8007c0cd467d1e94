"""
Error taxonomy for Messbook.

Every error raised by services carries a stable ``code`` and maps to one
HTTP status in ``messbook.main``. Nothing here is retried automatically.
"""

from fastapi import status


class MessbookError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MessbookError):
    """Malformed input such as a bad month key or a missing field."""

    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(MessbookError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(MessbookError):
    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(MessbookError):
    """The request collides with existing state."""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class AlreadyClosedError(ConflictError):
    code = "already_closed"

    def __init__(self, month: str):
        super().__init__(f"Month {month} has already been closed")
        self.month = month


class MonthLockedError(ConflictError):
    code = "month_locked"

    def __init__(self, month: str, action: str = "modify records"):
        super().__init__(f"Cannot {action} for locked month {month}")
        self.month = month


class DuplicateMealError(ConflictError):
    code = "duplicate_meal"


class PreconditionFailedError(MessbookError):
    """The month is not in a state that allows closing."""

    code = "precondition_failed"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ZeroExpensesError(PreconditionFailedError):
    code = "zero_expenses"

    def __init__(self, month: str):
        super().__init__(f"Cannot close month {month} with zero expenses")
        self.month = month


class ZeroMealsError(PreconditionFailedError):
    code = "zero_meals"

    def __init__(self, month: str):
        super().__init__(f"Cannot close month {month} with zero meals")
        self.month = month


class StorageError(MessbookError):
    """A persistence failure; the original driver error is chained."""

    code = "storage_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
