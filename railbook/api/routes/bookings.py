"""
Public booking endpoints (bearer token).
"""

from fastapi import APIRouter, Depends, status

from railbook.api.deps import get_orchestrator
from railbook.core.security import get_current_user_id
from railbook.schemas.booking import (
    BookingActionResponse,
    BookingCancelResponse,
    BookingConfirm,
    BookingCreate,
    BookingWithSchedule,
    UserBookingsResponse,
)
from railbook.services.booking_orchestrator import BookingOrchestrator

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingActionResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: str = Depends(get_current_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    Hold the requested seats and open a PENDING booking.

    All seats are held or none: if any of them is taken the request fails with
    409 SEAT_UNAVAILABLE. The hold expires after HOLD_TTL_MINUTES unless the
    booking is confirmed.
    """
    return await orchestrator.create_booking(user_id, booking_data)


@router.post("/{booking_id}/confirm", response_model=BookingActionResponse)
async def confirm_booking(
    booking_id: str,
    confirm_data: BookingConfirm,
    user_id: str = Depends(get_current_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """
    Pay for a PENDING booking and reserve its seats.

    The schedule price is charged, never the amount sent by the client; an
    amount below the price is rejected before any charge. A declined card
    leaves the holds in place so the payment can be retried.
    """
    return await orchestrator.confirm_booking(user_id, booking_id, confirm_data)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Cancel a booking, release its seats and refund a confirmed payment."""
    return await orchestrator.cancel_booking(user_id, booking_id)


@router.get("/", response_model=UserBookingsResponse)
async def list_user_bookings(
    user_id: str = Depends(get_current_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Get all bookings for the authenticated user, newest first."""
    return await orchestrator.get_user_bookings(user_id)


@router.get("/{booking_id}", response_model=BookingWithSchedule)
async def get_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_booking(user_id, booking_id)
