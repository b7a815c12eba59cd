"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    code = "APP_ERROR"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    code = "CONFLICT"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    code = "INVALID_INPUT"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


# Scheduling errors


class DoctorUnavailableException(BadRequestException):
    """Doctor is inactive or not verified."""

    code = "DOCTOR_UNAVAILABLE"

    def __init__(self, message: str = "Doctor is not available for appointments"):
        super().__init__(message)


class InvalidScheduleException(BadRequestException):
    """Requested appointment time is not in the future."""

    code = "INVALID_SCHEDULE"

    def __init__(self, message: str = "Appointment date must be in the future"):
        super().__init__(message)


class SlotConflictException(ConflictException):
    """Time slot already held by an active appointment."""

    code = "SLOT_CONFLICT"

    def __init__(self, message: str = "Time slot is already booked"):
        super().__init__(message)


class AlreadyTerminalException(ConflictException):
    """Appointment is in a status that allows no further transition."""

    code = "ALREADY_TERMINAL"

    def __init__(self, message: str = "Appointment can no longer change status"):
        super().__init__(message)


class CancellationWindowClosedException(BadRequestException):
    """Patient cancellation attempted inside the cutoff window."""

    code = "CANCELLATION_WINDOW_CLOSED"

    def __init__(self, message: str = "Cannot cancel appointment within 24 hours"):
        super().__init__(message)


class AlreadyRatedException(ConflictException):
    """Appointment already carries a rating."""

    code = "ALREADY_RATED"

    def __init__(self, message: str = "Appointment already rated"):
        super().__init__(message)
