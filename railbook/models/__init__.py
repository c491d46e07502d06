from railbook.models.seat import Seat, SeatHold, SeatStatus, Reservation
from railbook.models.booking import Booking, BookingStatus
from railbook.models.payment import Payment, PaymentStatus

__all__ = [
    "Seat", "SeatHold", "SeatStatus", "Reservation",
    "Booking", "BookingStatus",
    "Payment", "PaymentStatus",
]
