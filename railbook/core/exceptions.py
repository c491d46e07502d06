"""
Domain error taxonomy.

Services raise these typed errors and never build HTTP responses themselves.
Each error carries an ErrorKind; the API layer (railbook.api.errors) is the only
place that turns a kind into a status code. The same kinds travel over the wire
between services inside the error envelope, so a client can rebuild the exact
error type raised on the remote side.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    HOLD_NOT_FOUND = "HOLD_NOT_FOUND"
    SEAT_NOT_FOUND = "SEAT_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_STATE = "INVALID_STATE"
    NOT_RESERVED = "NOT_RESERVED"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    SEAT_UNAVAILABLE = "SEAT_UNAVAILABLE"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    HOLD_EXPIRED = "HOLD_EXPIRED"
    TIMEOUT = "TIMEOUT"
    UNREACHABLE = "UNREACHABLE"
    COLLABORATOR_ERROR = "COLLABORATOR_ERROR"


class RailbookError(Exception):
    """Base class for every error the booking domain raises on purpose."""

    kind: ErrorKind = ErrorKind.INVALID_REQUEST
    default_message: str = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(kind={self.kind.value}, message={self.message!r})>"


class NotFound(RailbookError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class HoldNotFound(NotFound):
    kind = ErrorKind.HOLD_NOT_FOUND
    default_message = "Seat hold not found"


class SeatNotFound(NotFound):
    kind = ErrorKind.SEAT_NOT_FOUND
    default_message = "Seat not found"


class Unauthorized(RailbookError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(RailbookError):
    kind = ErrorKind.FORBIDDEN
    default_message = "You can only access your own bookings"


class InvalidRequest(RailbookError):
    kind = ErrorKind.INVALID_REQUEST


class InvalidState(RailbookError):
    kind = ErrorKind.INVALID_STATE
    default_message = "Operation is not allowed in the current state"


class NotReserved(InvalidState):
    kind = ErrorKind.NOT_RESERVED
    default_message = "Seat is not reserved"


class AlreadyCancelled(InvalidState):
    kind = ErrorKind.ALREADY_CANCELLED
    default_message = "Booking is already cancelled"


class SeatUnavailable(RailbookError):
    kind = ErrorKind.SEAT_UNAVAILABLE
    default_message = "Some seats are not available"


class InvalidAmount(RailbookError):
    kind = ErrorKind.INVALID_AMOUNT
    default_message = "Payment amount is below the schedule price"


class PaymentFailed(RailbookError):
    kind = ErrorKind.PAYMENT_FAILED
    default_message = "Payment could not be processed"


class HoldExpired(RailbookError):
    """A hold disappeared between payment and seat confirmation."""

    kind = ErrorKind.HOLD_EXPIRED
    default_message = "Seat hold expired before the booking could be confirmed"


class CollaboratorTimeout(RailbookError):
    kind = ErrorKind.TIMEOUT
    default_message = "A downstream service did not respond in time"


class CollaboratorUnreachable(RailbookError):
    kind = ErrorKind.UNREACHABLE
    default_message = "A downstream service is unreachable"


class CollaboratorError(RailbookError):
    kind = ErrorKind.COLLABORATOR_ERROR
    default_message = "A downstream service failed"


_ERRORS_BY_KIND: dict[ErrorKind, type[RailbookError]] = {
    cls.kind: cls
    for cls in (
        NotFound, HoldNotFound, SeatNotFound, Unauthorized, Forbidden,
        InvalidRequest, InvalidState, NotReserved, AlreadyCancelled,
        SeatUnavailable, InvalidAmount, PaymentFailed, HoldExpired,
        CollaboratorTimeout, CollaboratorUnreachable, CollaboratorError,
    )
}


def error_for_kind(kind: str, message: Optional[str] = None) -> RailbookError:
    """Rebuild a typed error from a wire kind. Unknown kinds become CollaboratorError."""
    try:
        cls = _ERRORS_BY_KIND[ErrorKind(kind)]
    except ValueError:
        return CollaboratorError()
    return cls(message)
