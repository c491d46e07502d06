"""Booking state machine. CANCELLED is terminal; nothing returns to PENDING."""

from railbook.core.exceptions import AlreadyCancelled, InvalidState
from railbook.models.booking import BookingStatus

BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, set())


def assert_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    if can_transition(current, target):
        return
    if current == BookingStatus.CANCELLED:
        raise AlreadyCancelled()
    raise InvalidState(f"Invalid booking transition: {current.value} -> {target.value}")
