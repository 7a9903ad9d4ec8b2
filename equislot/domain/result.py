"""
Explicit success/failure results for expected domain outcomes.

Operations that can fail for business reasons (unknown booking, full group,
forbidden status change, ...) return ``Success`` or ``Failure`` instead of
raising. Callers branch on ``is_success``/``is_failure``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


class ErrorCode(str, Enum):
    """Machine-readable reasons for an expected failure."""

    NOT_FOUND = "NOT_FOUND"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    GROUP_BOOKING_NOT_FOUND = "GROUP_BOOKING_NOT_FOUND"
    PARTICIPANT_NOT_FOUND = "PARTICIPANT_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    GROUP_FULL = "GROUP_FULL"
    GROUP_NOT_OPEN = "GROUP_NOT_OPEN"
    JOIN_DEADLINE_PASSED = "JOIN_DEADLINE_PASSED"
    ALREADY_JOINED = "ALREADY_JOINED"
    NO_ACTIVE_PARTICIPANTS = "NO_ACTIVE_PARTICIPANTS"
    NO_DATA = "NO_DATA"
    INVALID_TIMES = "INVALID_TIMES"
    OVERLAP = "OVERLAP"
    INSUFFICIENT_TRAVEL_TIME = "INSUFFICIENT_TRAVEL_TIME"
    INACTIVE_SERVICE = "INACTIVE_SERVICE"
    INACTIVE_PROVIDER = "INACTIVE_PROVIDER"
    SELF_BOOKING = "SELF_BOOKING"
    SERVICE_PROVIDER_MISMATCH = "SERVICE_PROVIDER_MISMATCH"
    ALREADY_PAID = "ALREADY_PAID"
    BOOKING_NOT_PAYABLE = "BOOKING_NOT_PAYABLE"
    INVALID_INPUT = "INVALID_INPUT"


_NOT_FOUND_CODES = {
    ErrorCode.NOT_FOUND,
    ErrorCode.BOOKING_NOT_FOUND,
    ErrorCode.GROUP_BOOKING_NOT_FOUND,
    ErrorCode.PARTICIPANT_NOT_FOUND,
    ErrorCode.NO_DATA,
}

_CONFLICT_CODES = {
    ErrorCode.OVERLAP,
    ErrorCode.INSUFFICIENT_TRAVEL_TIME,
    ErrorCode.ALREADY_JOINED,
    ErrorCode.GROUP_FULL,
}


@dataclass(frozen=True)
class DomainError:
    """A failure reason with a human-readable message."""

    code: ErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def is_failure(self) -> bool:
        return False

    @property
    def error(self) -> None:
        return None


@dataclass(frozen=True)
class Failure(Generic[E]):
    error: E

    @property
    def is_success(self) -> bool:
        return False

    @property
    def is_failure(self) -> bool:
        return True

    @property
    def value(self) -> Any:
        raise ValueError(f"Cannot read the value of a failed result ({self.error})")


Result = Union[Success[T], Failure[E]]


def ok(value: T) -> Success[T]:
    return Success(value)


def fail(code: ErrorCode, message: str, **details: Any) -> Failure[DomainError]:
    """Build a failed result carrying a ``DomainError``."""
    return Failure(DomainError(code=code, message=message, details=details))


def error_status(error: DomainError) -> int:
    """
    Map a domain error to an HTTP-like status code for thin API layers.

    Unauthorized access to another user's record is reported through the
    not-found codes by the services themselves, so 404 is the common case.
    """
    if error.code in _NOT_FOUND_CODES:
        return 404
    if error.code == ErrorCode.UNAUTHORIZED:
        return 403
    if error.code in _CONFLICT_CODES:
        return 409
    return 400
