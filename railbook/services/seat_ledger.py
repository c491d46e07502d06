"""
Seat ledger: the only writer of seat status.

CONCURRENCY STRATEGY: Conditional writes with rowcount checks
=============================================================

Problem:
  Two customers hold the same seat at the same moment, or a customer confirms
  a hold while the sweeper is reclaiming it. Read-then-write would let both win.

Solution:
  Every state change is a conditional statement whose WHERE clause carries the
  precondition, and the affected row count tells us whether we won.

  1. hold:    UPDATE seats SET status='HELD'
              WHERE id IN (:ids) AND schedule_id = :schedule AND status = 'AVAILABLE'
              rowcount != len(ids) -> roll back, SeatUnavailable (no partial holds)
  2. confirm / release / sweep:
              DELETE FROM seat_holds WHERE id = :hold_id [AND expires_at < :now]
              rowcount == 0 -> someone else consumed the hold -> HoldNotFound / no-op

  On PostgreSQL the candidate rows are additionally locked with SELECT ... FOR
  UPDATE in primary key order, so overlapping multi-seat holds queue behind each
  other instead of deadlocking. The unique constraints on seat_holds.seat_id and
  reservations.seat_id are the final safety net.

Transactions:
  Functions here run on the caller's session and never commit. The request
  scoped session (railbook.db.session.get_db) commits once the route returns, and
  the sweeper opens one transaction per hold. A rejected operation rolls the
  session back before raising so nothing half-done can be committed later.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from railbook.core.exceptions import (
    HoldNotFound,
    InvalidRequest,
    InvalidState,
    NotReserved,
    SeatNotFound,
    SeatUnavailable,
)
from railbook.core.logging import get_logger
from railbook.core.metrics import record_ledger_operation, seats_held
from railbook.db.base import utcnow
from railbook.models.seat import Reservation, Seat, SeatHold, SeatStatus

logger = get_logger(__name__)


async def hold_seats(
    db: AsyncSession,
    schedule_id: int,
    seat_ids: list[str],
    user_id: str,
    ttl: timedelta,
    now: Optional[datetime] = None,
) -> list[SeatHold]:
    """
    Hold every requested seat or none of them.
    Returns one hold per seat, in the order the seats were requested.
    """
    if not seat_ids or len(set(seat_ids)) != len(seat_ids):
        raise InvalidRequest("seat_ids must be a non-empty list without duplicates")
    now = now or utcnow()

    await db.execute(
        select(Seat.id)
        .where(Seat.id.in_(seat_ids), Seat.schedule_id == schedule_id)
        .order_by(Seat.id)
        .with_for_update()
    )

    result = await db.execute(
        update(Seat)
        .where(
            Seat.id.in_(seat_ids),
            Seat.schedule_id == schedule_id,
            Seat.status == SeatStatus.AVAILABLE,
        )
        .values(status=SeatStatus.HELD)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != len(seat_ids):
        await db.rollback()
        record_ledger_operation("hold", ok=False)
        logger.warning(
            "hold_rejected",
            schedule_id=schedule_id,
            requested=len(seat_ids),
            matched=result.rowcount,
            user_id=user_id,
        )
        raise SeatUnavailable()

    expires_at = now + ttl
    holds = [
        SeatHold(seat_id=seat_id, user_id=user_id, expires_at=expires_at, created_at=now)
        for seat_id in seat_ids
    ]
    db.add_all(holds)
    await db.flush()

    record_ledger_operation("hold", ok=True)
    seats_held.inc(len(holds))
    logger.info(
        "seats_held",
        schedule_id=schedule_id,
        seat_ids=seat_ids,
        hold_ids=[hold.id for hold in holds],
        user_id=user_id,
        expires_at=expires_at.isoformat(),
    )
    return holds


async def _claim_hold(db: AsyncSession, hold_id: str, expired_before: Optional[datetime] = None) -> bool:
    """Delete a hold row. True only for the one caller whose delete removed it."""
    stmt = delete(SeatHold).where(SeatHold.id == hold_id)
    if expired_before is not None:
        stmt = stmt.where(SeatHold.expires_at < expired_before)
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


async def _lock_hold(db: AsyncSession, hold_id: str) -> Optional[SeatHold]:
    result = await db.execute(select(SeatHold).where(SeatHold.id == hold_id).with_for_update())
    return result.scalar_one_or_none()


async def confirm_seats(db: AsyncSession, hold_id: str, booking_id: str) -> Reservation:
    """
    Turn a hold into a reservation for `booking_id`.
    Not idempotent: a second call for the same hold raises HoldNotFound.
    """
    hold = await _lock_hold(db, hold_id)
    if hold is None:
        record_ledger_operation("confirm", ok=False)
        raise HoldNotFound(f"Seat hold {hold_id} not found")

    seat_id, user_id = hold.seat_id, hold.user_id
    if not await _claim_hold(db, hold_id):
        # Lost the race to the sweeper or a concurrent release
        await db.rollback()
        record_ledger_operation("confirm", ok=False)
        raise HoldNotFound(f"Seat hold {hold_id} not found")

    await db.execute(
        update(Seat)
        .where(Seat.id == seat_id)
        .values(status=SeatStatus.RESERVED)
        .execution_options(synchronize_session=False)
    )
    reservation = Reservation(seat_id=seat_id, user_id=user_id, booking_id=booking_id)
    db.add(reservation)
    await db.flush()

    record_ledger_operation("confirm", ok=True)
    logger.info(
        "seat_reserved",
        hold_id=hold_id,
        seat_id=seat_id,
        reservation_id=reservation.id,
        booking_id=booking_id,
    )
    return reservation


async def release_seats(db: AsyncSession, hold_id: str) -> None:
    """Drop a hold and put its seat back on sale."""
    hold = await _lock_hold(db, hold_id)
    if hold is None or not await _claim_hold(db, hold_id):
        await db.rollback()
        record_ledger_operation("release", ok=False)
        raise HoldNotFound(f"Seat hold {hold_id} not found")

    await db.execute(
        update(Seat)
        .where(Seat.id == hold.seat_id)
        .values(status=SeatStatus.AVAILABLE)
        .execution_options(synchronize_session=False)
    )
    record_ledger_operation("release", ok=True)
    logger.info("seat_hold_released", hold_id=hold_id, seat_id=hold.seat_id)


async def release_reserved_seat(db: AsyncSession, seat_id: str, booking_id: Optional[str] = None) -> None:
    """
    Delete the reservation on a RESERVED seat and make it AVAILABLE again.
    With `booking_id` only a reservation held by that booking is released.
    """
    result = await db.execute(
        select(Seat)
        .where(Seat.id == seat_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    seat = result.scalar_one_or_none()
    if seat is None:
        record_ledger_operation("release_reserved", ok=False)
        raise SeatNotFound(f"Seat {seat_id} not found")
    if seat.status != SeatStatus.RESERVED:
        record_ledger_operation("release_reserved", ok=False)
        raise NotReserved(f"Seat {seat_id} is not reserved")

    stmt = delete(Reservation).where(Reservation.seat_id == seat_id)
    if booking_id is not None:
        stmt = stmt.where(Reservation.booking_id == booking_id)
    removed = await db.execute(stmt.execution_options(synchronize_session=False))
    if removed.rowcount != 1:
        await db.rollback()
        record_ledger_operation("release_reserved", ok=False)
        owner = f" for booking {booking_id}" if booking_id is not None else ""
        raise NotReserved(f"Seat {seat_id} is not reserved{owner}")

    flipped = await db.execute(
        update(Seat)
        .where(Seat.id == seat_id, Seat.status == SeatStatus.RESERVED)
        .values(status=SeatStatus.AVAILABLE)
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount != 1:
        await db.rollback()
        record_ledger_operation("release_reserved", ok=False)
        raise NotReserved(f"Seat {seat_id} is not reserved")

    record_ledger_operation("release_reserved", ok=True)
    logger.info("reserved_seat_released", seat_id=seat_id, schedule_id=seat.schedule_id)


async def get_seat_details(db: AsyncSession, seat_ids: Iterable[str]) -> list[Seat]:
    """Seats that exist among `seat_ids`, in request order. Missing ids are skipped."""
    seat_ids = list(seat_ids)
    if not seat_ids:
        return []
    result = await db.execute(
        select(Seat).where(Seat.id.in_(seat_ids)).execution_options(populate_existing=True)
    )
    by_id = {seat.id: seat for seat in result.scalars().all()}
    return [by_id[seat_id] for seat_id in seat_ids if seat_id in by_id]


async def get_seat_availability(db: AsyncSession, schedule_id: int) -> list[Seat]:
    result = await db.execute(
        select(Seat)
        .where(Seat.schedule_id == schedule_id)
        .order_by(Seat.seat_number)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_schedule_ids_for_seats(db: AsyncSession, seat_ids: Iterable[str]) -> set[int]:
    seat_ids = list(seat_ids)
    if not seat_ids:
        return set()
    result = await db.execute(select(Seat.schedule_id).where(Seat.id.in_(seat_ids)).distinct())
    return set(result.scalars().all())


async def get_schedule_id_for_hold(db: AsyncSession, hold_id: str) -> Optional[int]:
    result = await db.execute(
        select(Seat.schedule_id).join(SeatHold, SeatHold.seat_id == Seat.id).where(SeatHold.id == hold_id)
    )
    return result.scalar_one_or_none()


async def get_holds_for_seat(db: AsyncSession, seat_id: str) -> list[SeatHold]:
    result = await db.execute(select(SeatHold).where(SeatHold.seat_id == seat_id))
    return list(result.scalars().all())


async def list_expired_holds(db: AsyncSession, now: datetime) -> list[SeatHold]:
    """Hold store scan used by the sweeper."""
    result = await db.execute(
        select(SeatHold).where(SeatHold.expires_at < now).order_by(SeatHold.expires_at)
    )
    return list(result.scalars().all())


async def reclaim_expired_hold(db: AsyncSession, hold_id: str, now: datetime) -> Optional[Seat]:
    """
    Sweeper path: drop a hold that is past its expiry and free the seat.
    Returns the freed seat, or None if the hold was already consumed.
    """
    hold = await _lock_hold(db, hold_id)
    if hold is None:
        return None
    seat_id = hold.seat_id
    if not await _claim_hold(db, hold_id, expired_before=now):
        return None

    await db.execute(
        update(Seat)
        .where(Seat.id == seat_id)
        .values(status=SeatStatus.AVAILABLE)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(
        select(Seat).where(Seat.id == seat_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_seat(db: AsyncSession, schedule_id: int, train_id: int, seat_number: str) -> Seat:
    existing = await db.execute(
        select(Seat.id).where(Seat.schedule_id == schedule_id, Seat.seat_number == seat_number)
    )
    if existing.scalar_one_or_none():
        raise InvalidState(f"Seat {seat_number} already exists on schedule {schedule_id}")

    seat = Seat(
        schedule_id=schedule_id,
        train_id=train_id,
        seat_number=seat_number,
        status=SeatStatus.AVAILABLE,
    )
    db.add(seat)
    await db.flush()
    await db.refresh(seat)

    logger.info("seat_created", seat_id=seat.id, schedule_id=schedule_id, seat_number=seat_number)
    return seat


async def remove_seat(db: AsyncSession, seat_id: str) -> Seat:
    """Administrative removal. Seats that are held or reserved cannot be removed."""
    result = await db.execute(
        select(Seat)
        .where(Seat.id == seat_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    seat = result.scalar_one_or_none()
    if seat is None:
        raise SeatNotFound(f"Seat {seat_id} not found")
    if seat.status != SeatStatus.AVAILABLE:
        raise InvalidState(f"Seat {seat_id} is {seat.status.value} and cannot be removed")

    await db.execute(delete(Seat).where(Seat.id == seat_id).execution_options(synchronize_session=False))
    db.expunge(seat)
    logger.info("seat_removed", seat_id=seat_id, schedule_id=seat.schedule_id)
    return seat
