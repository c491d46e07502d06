"""
Service-to-service booking endpoints.

Callers authenticate with the internal token and assert the acting user in
X-User-Id. Same saga as the public routes.
"""

from fastapi import APIRouter, Depends, status

from railbook.api.deps import get_orchestrator
from railbook.core.security import get_internal_user_id, require_internal_caller
from railbook.schemas.booking import (
    BookingActionResponse,
    BookingCancelResponse,
    BookingConfirm,
    BookingCreate,
    BookingRecord,
    BookingWithSchedule,
    UserBookingsResponse,
)
from railbook.services.booking_orchestrator import BookingOrchestrator

router = APIRouter(
    prefix="/internal/bookings",
    tags=["Internal: Bookings"],
    dependencies=[Depends(require_internal_caller)],
)


@router.post("/", response_model=BookingActionResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: str = Depends(get_internal_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.create_booking(user_id, booking_data)


@router.post("/{booking_id}/confirm", response_model=BookingActionResponse)
async def confirm_booking(
    booking_id: str,
    confirm_data: BookingConfirm,
    user_id: str = Depends(get_internal_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.confirm_booking(user_id, booking_id, confirm_data)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: str,
    user_id: str = Depends(get_internal_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.cancel_booking(user_id, booking_id)


@router.get("/", response_model=UserBookingsResponse)
async def list_user_bookings(
    user_id: str = Depends(get_internal_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_user_bookings(user_id)


@router.get("/{booking_id}", response_model=BookingWithSchedule)
async def get_booking(
    booking_id: str,
    user_id: str = Depends(get_internal_user_id),
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_booking(user_id, booking_id)


@router.get("/{booking_id}/record", response_model=BookingRecord)
async def get_booking_record(
    booking_id: str,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
):
    """Raw booking record, no ownership check."""
    return await orchestrator.get_booking_internal(booking_id)
