"""Appointment status transitions."""

from app.core.exceptions import InvalidTransitionException
from app.schemas.appointments import AppointmentStatus

_S = AppointmentStatus

# Status changes accepted by a plain update. Entering ``rescheduled`` goes
# through the reschedule operation, which also creates the successor.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    _S.CONFIRMED: frozenset({_S.NO_RESPONSE, _S.CANCELLED, _S.COMPLETED, _S.RESCHEDULED}),
    _S.NO_RESPONSE: frozenset({_S.CONFIRMED, _S.CANCELLED, _S.COMPLETED, _S.RESCHEDULED}),
    _S.CANCELLED: frozenset({_S.CONFIRMED, _S.NO_RESPONSE, _S.RESCHEDULED}),
    _S.COMPLETED: frozenset({_S.CONFIRMED}),
    _S.RESCHEDULED: frozenset(),
}


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    """Check whether a status change is allowed. Staying put always is."""
    return current == requested or requested in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: AppointmentStatus, requested: AppointmentStatus) -> None:
    """
    Validate a status change.

    Raises:
        InvalidTransitionException: If the lifecycle forbids the change
    """
    if not can_transition(current, requested):
        raise InvalidTransitionException(current.value, requested.value)


def reactivates(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    """Whether the change makes a slot-free appointment occupy its slot again."""
    return not current.is_active and requested.is_active
