"""
Booking status state machine.

    pending ──> confirmed ──> completed
       │            │
       └────────────┴──> cancelled

Completed and cancelled are terminal.
"""

from typing import Dict, Tuple

from .entities import BookingStatus
from .result import ErrorCode, Result, fail, ok

ALLOWED_TRANSITIONS: Dict[BookingStatus, Tuple[BookingStatus, ...]] = {
    BookingStatus.PENDING: (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    BookingStatus.CONFIRMED: (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
    BookingStatus.COMPLETED: (),
    BookingStatus.CANCELLED: (),
}


def parse_status(value: str) -> Result:
    """Parse a raw status string into a ``BookingStatus``."""
    try:
        return ok(BookingStatus(value))
    except ValueError:
        return fail(ErrorCode.INVALID_INPUT, f"Unknown booking status: {value!r}")


def is_terminal(status: BookingStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def allowed_transitions(status: BookingStatus) -> Tuple[BookingStatus, ...]:
    return ALLOWED_TRANSITIONS[status]


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(current: BookingStatus, target: BookingStatus) -> Result:
    """Validate ``current -> target`` and return the new status."""
    if not can_transition(current, target):
        return fail(
            ErrorCode.INVALID_STATUS_TRANSITION,
            f'Cannot change status from "{current.value}" to "{target.value}"',
            from_status=current.value,
            to_status=target.value,
        )
    return ok(target)
