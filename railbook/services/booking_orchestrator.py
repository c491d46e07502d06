"""
Booking orchestrator: the booking saga.

CREATE   validate user and schedule -> hold seats -> persist PENDING
CONFIRM  price check -> charge -> convert every hold into a reservation -> CONFIRMED
CANCEL   PENDING: release holds (or reservations a stopped confirm left) + refund any charge
         CONFIRMED: release reservations + refund -> CANCELLED

Seats and money live in other services and are only reached through their
clients, so there is no shared transaction. Each step either leaves the system
in a state the next attempt can pick up, or runs compensating actions:

- a failed charge leaves holds and booking alone; the customer can retry the
  payment until the hold TTL runs out
- a hold that vanished after the charge (the sweeper got it first) is a hard
  stop. With COMPENSATE_ON_HOLD_LOSS the partial reservations are released,
  the charge refunded and the booking cancelled; without it the booking stays
  PENDING with the payment PAID for manual reconciliation
- cancel is best effort per seat and never blocked by a failed refund
"""

import asyncio
import time
from decimal import Decimal
from typing import Optional

from railbook.clients.catalog import ScheduleClient, UserClient
from railbook.clients.inventory import InventoryClient
from railbook.clients.payments import PaymentClient
from railbook.core.config import Settings
from railbook.core.exceptions import (
    AlreadyCancelled,
    CollaboratorTimeout,
    CollaboratorUnreachable,
    Forbidden,
    HoldExpired,
    HoldNotFound,
    InvalidAmount,
    InvalidState,
    NotFound,
    NotReserved,
    PaymentFailed,
    RailbookError,
)
from railbook.core.logging import bind_saga_context, get_logger
from railbook.core.metrics import record_compensation, record_saga_step, saga_latency
from railbook.models.booking import Booking, BookingStatus
from railbook.schemas.booking import (
    BookingActionResponse,
    BookingCancelResponse,
    BookingConfirm,
    BookingCreate,
    BookingDetails,
    BookingRecord,
    BookingWithSchedule,
    ScheduleDisplay,
    UserBookingsResponse,
)
from railbook.schemas.payment import PaymentRequest
from railbook.services.booking_store import BookingStore

logger = get_logger(__name__)

CENTS = Decimal("0.01")


class BookingOrchestrator:
    def __init__(
        self,
        store: BookingStore,
        inventory: InventoryClient,
        payments: PaymentClient,
        schedules: ScheduleClient,
        users: UserClient,
        settings: Settings,
    ):
        self.store = store
        self.inventory = inventory
        self.payments = payments
        self.schedules = schedules
        self.users = users
        self.settings = settings

    async def _load_owned(self, user_id: str, booking_id: str) -> Booking:
        booking = await self.store.get(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        if booking.user_id != user_id:
            logger.warning("booking_access_denied", booking_id=booking_id, user_id=user_id)
            raise Forbidden()
        return booking

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_booking(self, user_id: str, request: BookingCreate) -> BookingActionResponse:
        bind_saga_context("create", user_id=user_id)
        start = time.perf_counter()

        await asyncio.gather(
            self.users.validate_user(user_id),
            self.schedules.validate_schedule(request.schedule_id),
        )
        record_saga_step("create", "validate", ok=True)

        try:
            holds = await self.inventory.hold_seats(
                request.schedule_id,
                request.seat_ids,
                user_id,
                ttl_minutes=self.settings.HOLD_TTL_MINUTES,
            )
        except RailbookError:
            record_saga_step("create", "hold", ok=False)
            raise
        record_saga_step("create", "hold", ok=True)
        hold_ids = [hold.id for hold in holds]

        try:
            booking = await self.store.create_pending(
                user_id=user_id,
                schedule_id=request.schedule_id,
                seat_ids=request.seat_ids,
                hold_ids=hold_ids,
                notes=request.notes,
            )
        except Exception:
            # The holds stay orphaned until the sweeper reclaims them at expiry
            record_saga_step("create", "persist", ok=False)
            logger.error("booking_persist_failed_holds_orphaned", hold_ids=hold_ids, exc_info=True)
            raise

        record_saga_step("create", "persist", ok=True)
        saga_latency.labels(operation="create").observe(time.perf_counter() - start)
        logger.info(
            "booking_created",
            booking_id=booking.id,
            schedule_id=booking.schedule_id,
            seat_ids=booking.seat_ids,
            hold_ids=hold_ids,
        )
        return BookingActionResponse(
            booking_id=booking.id,
            status=booking.status,
            hold_ids=hold_ids,
            message="Seats held. Confirm the booking before the hold expires.",
        )

    # ------------------------------------------------------------------
    # Confirm
    # ------------------------------------------------------------------

    async def confirm_booking(self, user_id: str, booking_id: str, request: BookingConfirm) -> BookingActionResponse:
        bind_saga_context("confirm", booking_id=booking_id, user_id=user_id)
        start = time.perf_counter()

        booking = await self._load_owned(user_id, booking_id)
        if booking.status != BookingStatus.PENDING:
            raise InvalidState(f"Booking is {booking.status.value}; only PENDING bookings can be confirmed")

        price = (await self.schedules.get_schedule_price(booking.schedule_id)).quantize(CENTS)
        if request.amount < price:
            record_saga_step("confirm", "price_check", ok=False)
            logger.info("confirm_amount_too_low", offered=str(request.amount), price=str(price))
            raise InvalidAmount(f"Amount {request.amount} is below the price {price}")

        await self._charge(booking, user_id, price, request)

        hold_ids = list(booking.hold_ids)
        reserved_seat_ids: list[str] = []
        for index, hold_id in enumerate(hold_ids):
            try:
                reservation = await self.inventory.confirm_seats(hold_id, booking.id)
            except HoldNotFound as e:
                record_saga_step("confirm", "reserve", ok=False)
                logger.error(
                    "hold_lost_after_payment",
                    hold_id=hold_id,
                    reserved_seat_ids=reserved_seat_ids,
                    compensate=self.settings.COMPENSATE_ON_HOLD_LOSS,
                )
                if self.settings.COMPENSATE_ON_HOLD_LOSS:
                    await self._compensate_hold_loss(booking, user_id, reserved_seat_ids, hold_ids[index + 1:])
                else:
                    logger.warning("booking_needs_reconciliation", booking_id=booking.id)
                raise HoldExpired() from e
            reserved_seat_ids.append(reservation.seat_id)
        record_saga_step("confirm", "reserve", ok=True)

        booking = await self.store.mark_confirmed(booking)
        saga_latency.labels(operation="confirm").observe(time.perf_counter() - start)
        logger.info("booking_confirmed", booking_id=booking.id, seat_ids=reserved_seat_ids, amount=str(price))
        return BookingActionResponse(
            booking_id=booking.id,
            status=booking.status,
            hold_ids=[],
            message="Booking confirmed",
        )

    async def _charge(self, booking: Booking, user_id: str, price: Decimal, request: BookingConfirm) -> None:
        payment = PaymentRequest(booking_id=booking.id, user_id=user_id, amount=price, card=request.card)
        try:
            result = await self.payments.process_payment(payment)
        except (CollaboratorTimeout, CollaboratorUnreachable, PaymentFailed, InvalidState):
            # InvalidState: another confirm already charged or is charging this booking
            record_saga_step("confirm", "charge", ok=False)
            raise
        except RailbookError as e:
            record_saga_step("confirm", "charge", ok=False)
            logger.warning("payment_rejected", kind=e.kind.value, message=e.message)
            raise PaymentFailed(f"Payment failed: {e.message}") from e

        if not result.success:
            record_saga_step("confirm", "charge", ok=False)
            logger.info("payment_declined", payment_id=result.payment_id)
            raise PaymentFailed(f"Payment failed: {result.message}")

        record_saga_step("confirm", "charge", ok=True)
        logger.info("payment_captured", payment_id=result.payment_id, amount=str(price))

    async def _compensate_hold_loss(
        self,
        booking: Booking,
        user_id: str,
        reserved_seat_ids: list[str],
        remaining_hold_ids: list[str],
    ) -> None:
        for seat_id in reserved_seat_ids:
            await self._release_reserved(seat_id, booking.id, compensation=True)
        for hold_id in remaining_hold_ids:
            await self._release_hold(hold_id, compensation=True)

        refunded = await self._refund(booking.id, user_id, compensation=True)
        try:
            await self.store.mark_cancelled(booking)
            record_compensation("cancel_booking", ok=True)
        except RailbookError as e:
            record_compensation("cancel_booking", ok=False)
            logger.error("compensation_cancel_failed", booking_id=booking.id, error=e.message)
            return
        logger.warning("booking_compensated", booking_id=booking.id, refunded=refunded)

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel_booking(self, user_id: str, booking_id: str) -> BookingCancelResponse:
        bind_saga_context("cancel", booking_id=booking_id, user_id=user_id)
        start = time.perf_counter()

        booking = await self._load_owned(user_id, booking_id)
        if booking.status == BookingStatus.CANCELLED:
            raise AlreadyCancelled()

        unreleased: list[str] = []
        refunded = False
        if booking.status == BookingStatus.PENDING:
            # Holds come back from the ledger in seat order
            for seat_id, hold_id in zip(booking.seat_ids, booking.hold_ids):
                if not await self._release_pending_seat(booking.id, seat_id, hold_id):
                    unreleased.append(seat_id)
            # A confirm that stopped after the charge leaves a PAID payment behind
            refunded = await self._refund(booking.id, user_id, charged=False)
        else:
            for seat_id in booking.seat_ids:
                if not await self._release_reserved(seat_id, booking.id):
                    unreleased.append(seat_id)
            refunded = await self._refund(booking.id, user_id)

        was_confirmed = booking.status == BookingStatus.CONFIRMED
        booking = await self.store.mark_cancelled(booking)
        record_saga_step("cancel", "persist", ok=True)
        saga_latency.labels(operation="cancel").observe(time.perf_counter() - start)
        logger.info("booking_cancelled", booking_id=booking.id, refunded=refunded, unreleased_seat_ids=unreleased)

        if was_confirmed and not refunded:
            message = "Booking cancelled. The refund could not be processed and will be handled manually."
        else:
            message = "Booking cancelled"
        return BookingCancelResponse(
            booking_id=booking.id,
            status=booking.status,
            refunded=refunded,
            unreleased_seat_ids=unreleased,
            message=message,
        )

    async def _release_pending_seat(self, booking_id: str, seat_id: str, hold_id: str) -> bool:
        """
        Free one seat of a PENDING booking. A confirm that stopped partway may
        already have turned the hold into a reservation for this booking, so a
        missing hold falls back to releasing that reservation.
        """
        try:
            await self.inventory.release_seats(hold_id)
        except HoldNotFound:
            logger.info("hold_already_gone", hold_id=hold_id, seat_id=seat_id)
            return await self._release_reserved(seat_id, booking_id)
        except RailbookError as e:
            self._record_release("release_hold", False, ok=False)
            logger.error("hold_release_failed", hold_id=hold_id, kind=e.kind.value, error=e.message)
            return False
        self._record_release("release_hold", False, ok=True)
        return True

    async def _release_hold(self, hold_id: str, compensation: bool = False) -> bool:
        """True when the hold no longer blocks its seat."""
        try:
            await self.inventory.release_seats(hold_id)
        except HoldNotFound:
            # Already swept or consumed; the seat is not held by us anymore
            logger.info("hold_already_gone", hold_id=hold_id)
            return True
        except RailbookError as e:
            self._record_release("release_hold", compensation, ok=False)
            logger.error("hold_release_failed", hold_id=hold_id, kind=e.kind.value, error=e.message)
            return False
        self._record_release("release_hold", compensation, ok=True)
        return True

    async def _release_reserved(self, seat_id: str, booking_id: str, compensation: bool = False) -> bool:
        """Release the seat only if it is reserved for `booking_id`."""
        try:
            await self.inventory.release_reserved_seat(seat_id, booking_id=booking_id)
        except NotReserved:
            logger.info("seat_not_reserved_for_booking", seat_id=seat_id, booking_id=booking_id)
            return True
        except RailbookError as e:
            self._record_release("release_reserved", compensation, ok=False)
            logger.error("reserved_seat_release_failed", seat_id=seat_id, kind=e.kind.value, error=e.message)
            return False
        self._record_release("release_reserved", compensation, ok=True)
        return True

    @staticmethod
    def _record_release(action: str, compensation: bool, ok: bool) -> None:
        if compensation:
            record_compensation(action, ok=ok)
        else:
            record_saga_step("cancel", action, ok=ok)

    async def _refund(self, booking_id: str, user_id: str, compensation: bool = False, charged: bool = True) -> bool:
        """
        Refund never raises: money settlement must not block seat release.
        With charged=False the booking may never have been paid, so a missing
        or unpaid payment just means there is nothing to refund.
        """
        try:
            result = await self.payments.process_refund(booking_id, user_id)
        except (NotFound, InvalidState) as e:
            if not charged:
                logger.debug("refund_not_needed", booking_id=booking_id, reason=e.message)
                return False
            ok = False
            logger.error("refund_failed", booking_id=booking_id, kind=e.kind.value, error=e.message)
        except RailbookError as e:
            ok = False
            logger.error("refund_failed", booking_id=booking_id, kind=e.kind.value, error=e.message)
        else:
            ok = result.success
            if not ok:
                logger.error("refund_declined", booking_id=booking_id, payment_id=result.payment_id)

        if compensation:
            record_compensation("refund", ok=ok)
        else:
            record_saga_step("cancel", "refund", ok=ok)
        return ok

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _details(self, booking: Booking) -> BookingDetails:
        seats = await self.inventory.get_seat_details(booking.seat_ids)
        return BookingDetails(
            id=booking.id,
            schedule_id=booking.schedule_id,
            seats=seats,
            status=booking.status,
            notes=booking.notes,
            created_at=booking.created_at,
            confirmed_at=booking.confirmed_at,
            cancelled_at=booking.cancelled_at,
        )

    async def get_user_bookings(self, user_id: str) -> UserBookingsResponse:
        bookings = await self.store.list_for_user(user_id)
        details = await asyncio.gather(*(self._details(booking) for booking in bookings))
        return UserBookingsResponse(bookings=list(details), count=len(details))

    async def get_booking(self, user_id: str, booking_id: str) -> BookingWithSchedule:
        booking = await self._load_owned(user_id, booking_id)
        details, schedule = await asyncio.gather(
            self._details(booking),
            self.schedules.get_schedule_details(booking.schedule_id),
        )
        return BookingWithSchedule(
            **details.model_dump(),
            schedule=ScheduleDisplay(
                origin=schedule.departure_station.name,
                destination=schedule.arrival_station.name,
                departure_time=schedule.departure_time,
                arrival_time=schedule.arrival_time,
                train_number=schedule.train.train_number,
                train_name=schedule.train.name,
            ),
        )

    async def get_booking_internal(self, booking_id: str) -> BookingRecord:
        """Raw record for trusted callers; no ownership check."""
        booking: Optional[Booking] = await self.store.get(booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found")
        return BookingRecord.model_validate(booking)
