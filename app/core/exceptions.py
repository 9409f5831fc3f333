"""Custom application exceptions."""

from uuid import UUID


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class SlotConflictException(ConflictException):
    """Requested slot overlaps an active appointment."""

    def __init__(
        self,
        patient_name: str | None,
        appointment_id: UUID | None = None,
    ):
        """Initialize with the conflicting patient's display name."""
        self.patient_name = patient_name
        self.appointment_id = appointment_id
        if patient_name:
            message = f"An appointment already exists in that time slot with {patient_name}"
        else:
            message = "An appointment already exists in that time slot"
        super().__init__(message)


class GuardedDeletionException(BadRequestException):
    """Appointment has payments attached and cannot be deleted."""

    def __init__(self, payment_count: int):
        """Initialize with the number of linked payments."""
        self.payment_count = payment_count
        super().__init__(
            "Cannot delete an appointment with associated payments. Cancel it instead."
        )


class InvalidTransitionException(ConflictException):
    """Status change not permitted by the appointment lifecycle."""

    def __init__(self, current: str, requested: str):
        """Initialize with the current and requested statuses."""
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change appointment status from '{current}' to '{requested}'")
