from railbook.schemas.booking import (
    BookingCreate, BookingConfirm, BookingActionResponse, BookingCancelResponse,
    BookingDetails, BookingWithSchedule, UserBookingsResponse, BookingRecord,
)
from railbook.schemas.inventory import (
    HoldSeatsRequest, HoldSeatsResponse, ConfirmSeatsRequest, ReservationResponse,
    ReleaseSeatsRequest, ReleaseReservedSeatRequest, SeatInfo,
)
from railbook.schemas.payment import CardDetails, PaymentRequest, RefundRequest, PaymentResult

__all__ = [
    "BookingCreate", "BookingConfirm", "BookingActionResponse", "BookingCancelResponse",
    "BookingDetails", "BookingWithSchedule", "UserBookingsResponse", "BookingRecord",
    "HoldSeatsRequest", "HoldSeatsResponse", "ConfirmSeatsRequest", "ReservationResponse",
    "ReleaseSeatsRequest", "ReleaseReservedSeatRequest", "SeatInfo",
    "CardDetails", "PaymentRequest", "RefundRequest", "PaymentResult",
]
