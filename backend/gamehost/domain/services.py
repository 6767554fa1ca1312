from __future__ import annotations

import math
from datetime import datetime, timedelta

from ..models import BookingStatus
from .errors import InvalidTransitionError, TooEarlyError

VALID_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED_BY_GUEST, BookingStatus.CANCELLED_BY_VENUE}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {
            BookingStatus.ARRIVED,
            BookingStatus.SEATED,
            BookingStatus.CANCELLED_BY_GUEST,
            BookingStatus.CANCELLED_BY_VENUE,
            BookingStatus.NO_SHOW,
        }
    ),
    BookingStatus.ARRIVED: frozenset(
        {BookingStatus.SEATED, BookingStatus.CANCELLED_BY_VENUE, BookingStatus.NO_SHOW}
    ),
    BookingStatus.SEATED: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
    BookingStatus.CANCELLED_BY_GUEST: frozenset(),
    BookingStatus.CANCELLED_BY_VENUE: frozenset(),
}

ACTION_NAMES: dict[BookingStatus, str] = {
    BookingStatus.PENDING: "set to pending",
    BookingStatus.CONFIRMED: "confirm",
    BookingStatus.ARRIVED: "mark as arrived",
    BookingStatus.SEATED: "seat",
    BookingStatus.COMPLETED: "complete",
    BookingStatus.NO_SHOW: "mark as no-show",
    BookingStatus.CANCELLED_BY_GUEST: "cancel",
    BookingStatus.CANCELLED_BY_VENUE: "cancel",
}

# Lifecycle timestamp column set when entering each status.
TIMESTAMP_FIELDS: dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.ARRIVED: "arrived_at",
    BookingStatus.SEATED: "seated_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.NO_SHOW: "no_show_at",
    BookingStatus.CANCELLED_BY_GUEST: "cancelled_at",
    BookingStatus.CANCELLED_BY_VENUE: "cancelled_at",
}

_CANCELLED = (BookingStatus.CANCELLED_BY_GUEST, BookingStatus.CANCELLED_BY_VENUE)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise InvalidTransitionError unless `current -> target` is allowed."""
    if can_transition(current, target):
        return
    if target in _CANCELLED and current in _CANCELLED:
        raise InvalidTransitionError("This booking has already been cancelled.")
    readable = current.value.replace("_", " ")
    raise InvalidTransitionError(f"Cannot {ACTION_NAMES[target]} a booking that is {readable}.")


def ensure_no_show_allowed(starts_at: datetime, now: datetime, *, grace_minutes: int) -> None:
    """A booking may only be marked no-show once its grace period has elapsed."""
    deadline = starts_at + timedelta(minutes=grace_minutes)
    if now < deadline:
        remaining = math.ceil((deadline - now).total_seconds() / 60)
        raise TooEarlyError(
            f"Cannot mark as no-show until {grace_minutes} minutes after booking time. "
            f"{remaining} minute(s) remaining."
        )
