"""
Inventory service endpoints (seat ledger). Internal callers only.

Every mutation commits before the availability cache is dropped, so a
concurrent seat map read cannot cache the pre-commit state.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from railbook.core.config import get_settings
from railbook.core.security import require_internal_caller
from railbook.db.session import get_db
from railbook.schemas.inventory import (
    ConfirmSeatsRequest,
    HoldResponse,
    HoldSeatsRequest,
    HoldSeatsResponse,
    ReleaseReservedSeatRequest,
    ReleaseResponse,
    ReleaseSeatsRequest,
    ReservationResponse,
    SeatCreate,
    SeatDetailsRequest,
    SeatDetailsResponse,
    SeatInfo,
    SeatResponse,
)
from railbook.services import seat_ledger
from railbook.services.cache_service import invalidate_availability

router = APIRouter(
    prefix="/internal/inventory",
    tags=["Internal: Inventory"],
    dependencies=[Depends(require_internal_caller)],
)


@router.post("/seats/hold", response_model=HoldSeatsResponse, status_code=status.HTTP_201_CREATED)
async def hold_seats(request: HoldSeatsRequest, db: AsyncSession = Depends(get_db)):
    ttl = timedelta(minutes=request.ttl_minutes or get_settings().HOLD_TTL_MINUTES)
    holds = await seat_ledger.hold_seats(db, request.schedule_id, request.seat_ids, request.user_id, ttl)
    await db.commit()
    await invalidate_availability([request.schedule_id])
    return HoldSeatsResponse(holds=[HoldResponse.model_validate(hold) for hold in holds])


@router.post("/seats/confirm", response_model=ReservationResponse)
async def confirm_seats(request: ConfirmSeatsRequest, db: AsyncSession = Depends(get_db)):
    schedule_id = await seat_ledger.get_schedule_id_for_hold(db, request.hold_id)
    reservation = await seat_ledger.confirm_seats(db, request.hold_id, request.booking_id)
    await db.commit()
    if schedule_id is not None:
        await invalidate_availability([schedule_id])
    return reservation


@router.post("/seats/release", response_model=ReleaseResponse)
async def release_seats(request: ReleaseSeatsRequest, db: AsyncSession = Depends(get_db)):
    schedule_id = await seat_ledger.get_schedule_id_for_hold(db, request.hold_id)
    await seat_ledger.release_seats(db, request.hold_id)
    await db.commit()
    if schedule_id is not None:
        await invalidate_availability([schedule_id])
    return ReleaseResponse(message="Seat hold released")


@router.post("/seats/release-reserved", response_model=ReleaseResponse)
async def release_reserved_seat(request: ReleaseReservedSeatRequest, db: AsyncSession = Depends(get_db)):
    await seat_ledger.release_reserved_seat(db, request.seat_id, booking_id=request.booking_id)
    await db.commit()
    await invalidate_availability(await seat_ledger.get_schedule_ids_for_seats(db, [request.seat_id]))
    return ReleaseResponse(message="Reserved seat released")


@router.post("/seats/details", response_model=SeatDetailsResponse)
async def get_seat_details(request: SeatDetailsRequest, db: AsyncSession = Depends(get_db)):
    seats = await seat_ledger.get_seat_details(db, request.seat_ids)
    return SeatDetailsResponse(seats=[SeatInfo.model_validate(seat) for seat in seats])


@router.get("/seats/{seat_id}/holds", response_model=list[HoldResponse])
async def get_holds_for_seat(seat_id: str, db: AsyncSession = Depends(get_db)):
    return await seat_ledger.get_holds_for_seat(db, seat_id)


@router.post("/seats", response_model=SeatResponse, status_code=status.HTTP_201_CREATED)
async def create_seat(seat_data: SeatCreate, db: AsyncSession = Depends(get_db)):
    seat = await seat_ledger.create_seat(db, seat_data.schedule_id, seat_data.train_id, seat_data.seat_number)
    await db.commit()
    await invalidate_availability([seat.schedule_id])
    return seat


@router.delete("/seats/{seat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_seat(seat_id: str, db: AsyncSession = Depends(get_db)):
    seat = await seat_ledger.remove_seat(db, seat_id)
    await db.commit()
    await invalidate_availability([seat.schedule_id])
