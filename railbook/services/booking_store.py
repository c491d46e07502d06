"""
Booking record store.

Status changes are conditional updates (WHERE status = <what we loaded>), so a
confirm racing a cancel on the same booking cannot both win. Every write
commits immediately: a saga step that later fails must not roll back a booking
state that was already decided, e.g. a compensating cancel.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from railbook.core.exceptions import AlreadyCancelled, InvalidState
from railbook.core.logging import get_logger
from railbook.db.base import utcnow
from railbook.domain.booking_state import assert_booking_transition
from railbook.models.booking import Booking, BookingStatus

logger = get_logger(__name__)


class BookingStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_pending(
        self,
        user_id: str,
        schedule_id: int,
        seat_ids: list[str],
        hold_ids: list[str],
        notes: Optional[str] = None,
    ) -> Booking:
        booking = Booking(
            user_id=user_id,
            schedule_id=schedule_id,
            seat_ids=list(seat_ids),
            hold_ids=list(hold_ids),
            status=BookingStatus.PENDING,
            notes=notes,
        )
        self.db.add(booking)
        await self.db.commit()
        await self.db.refresh(booking)
        return booking

    async def get(self, booking_id: str) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str) -> list[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id)
        )
        return list(result.scalars().all())

    async def mark_confirmed(self, booking: Booking) -> Booking:
        return await self._transition(
            booking,
            BookingStatus.CONFIRMED,
            hold_ids=[],
            confirmed_at=utcnow(),
        )

    async def mark_cancelled(self, booking: Booking) -> Booking:
        return await self._transition(booking, BookingStatus.CANCELLED, cancelled_at=utcnow())

    async def _transition(self, booking: Booking, target: BookingStatus, **values) -> Booking:
        current = booking.status
        assert_booking_transition(current, target)

        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == current)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            latest = await self.get(booking.id)
            logger.warning(
                "booking_transition_lost",
                booking_id=booking.id,
                expected=current.value,
                actual=latest.status.value if latest else None,
                target=target.value,
            )
            if latest is not None and latest.status == BookingStatus.CANCELLED:
                raise AlreadyCancelled()
            raise InvalidState("Booking was modified concurrently")

        await self.db.commit()
        await self.db.refresh(booking)
        logger.info("booking_status_changed", booking_id=booking.id, old=current.value, new=target.value)
        return booking
