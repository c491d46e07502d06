"""
Tests for the booking saga: create, confirm, cancel and the compensation paths.

The orchestrator runs on the test session and reaches the inventory and payment
routes over in-process HTTP, so every step crosses a real service boundary.
"""

import asyncio
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select

from railbook.clients.payments import PaymentClient
from railbook.core.exceptions import (
    AlreadyCancelled,
    CollaboratorTimeout,
    Forbidden,
    HoldExpired,
    InvalidAmount,
    InvalidState,
    NotFound,
    PaymentFailed,
    SeatUnavailable,
)
from railbook.main import app
from railbook.models.booking import BookingStatus
from railbook.models.payment import PaymentStatus
from railbook.models.seat import Reservation, SeatStatus
from railbook.schemas.booking import BookingActionResponse, BookingConfirm, BookingCreate
from railbook.services.booking_orchestrator import BookingOrchestrator
from railbook.services.booking_store import BookingStore
from railbook.services.hold_sweeper import sweep_expired_holds
from railbook.services.interfaces.simulated_provider import SimulatedProvider
from railbook.services.provider_factory import get_payment_provider
from tests.conftest import (
    DECLINED_CARD,
    GOOD_CARD,
    OTHER_USER_ID,
    PRICE,
    REFUND_FAILS_CARD,
    SCHEDULE_ID,
    USER_ID,
    expire_holds,
    load_booking,
    load_holds,
    load_payment,
    load_seat_statuses,
)


def create_request(*seats, schedule_id=SCHEDULE_ID) -> BookingCreate:
    return BookingCreate(schedule_id=schedule_id, seat_ids=[seat.id for seat in seats])


def confirm_request(amount=PRICE, card=GOOD_CARD) -> BookingConfirm:
    return BookingConfirm(amount=amount, card=card)


class SlowCountingProvider(SimulatedProvider):
    """Simulated provider that takes a while to answer and counts its charges."""

    def __init__(self):
        super().__init__()
        self.charges = 0

    async def charge(self, amount, currency, card, metadata):
        self.charges += 1
        await asyncio.sleep(0.2)
        return await super().charge(amount, currency, card, metadata)


async def load_reservations(session_factory) -> list[Reservation]:
    async with session_factory() as session:
        return list((await session.execute(select(Reservation))).scalars().all())


# ----------------------------------------------------------------------
# Create
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_booking_holds_seats(make_orchestrator, session_factory, seats):
    orchestrator = make_orchestrator()

    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))

    assert created.status == BookingStatus.PENDING
    assert len(created.hold_ids) == 2
    booking = await load_booking(session_factory, created.booking_id)
    assert booking.hold_ids == created.hold_ids
    assert booking.seat_ids == [seats["A1"].id, seats["A2"].id]
    statuses = await load_seat_statuses(session_factory, booking.seat_ids)
    assert set(statuses.values()) == {SeatStatus.HELD}


@pytest.mark.asyncio
async def test_create_booking_unknown_user_or_schedule(make_orchestrator, session_factory, seats):
    orchestrator = make_orchestrator()

    with pytest.raises(NotFound):
        await orchestrator.create_booking("nobody", create_request(seats["A1"]))
    with pytest.raises(NotFound):
        await orchestrator.create_booking(USER_ID, create_request(seats["A1"], schedule_id=99))

    assert await load_holds(session_factory) == []


@pytest.mark.asyncio
async def test_create_booking_seat_taken(make_orchestrator, session_factory, seats):
    orchestrator = make_orchestrator()
    await orchestrator.create_booking(OTHER_USER_ID, create_request(seats["A2"]))

    with pytest.raises(SeatUnavailable):
        await orchestrator.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))

    statuses = await load_seat_statuses(session_factory, [seats["A1"].id])
    assert statuses[seats["A1"].id] == SeatStatus.AVAILABLE


# ----------------------------------------------------------------------
# Confirm
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_then_confirm_round_trip(make_orchestrator, session_factory, seats):
    """Confirm leaves no holds and one reservation per originally held seat."""
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))

    confirmed = await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())

    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.hold_ids == []
    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.hold_ids == []
    assert booking.confirmed_at is not None
    reservations = await load_reservations(session_factory)
    assert sorted(r.seat_id for r in reservations) == sorted(booking.seat_ids)
    assert all(r.booking_id == booking.id for r in reservations)
    assert await load_holds(session_factory) == []
    payment = await load_payment(session_factory, booking.id)
    assert payment.status == PaymentStatus.PAID
    assert Decimal(payment.amount) == PRICE


@pytest.mark.asyncio
async def test_confirm_charges_schedule_price_not_client_amount(make_orchestrator, session_factory, seats):
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))

    await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request(amount=Decimal("100.00")))

    payment = await load_payment(session_factory, created.booking_id)
    assert Decimal(payment.amount) == PRICE


@pytest.mark.asyncio
async def test_confirm_amount_below_price(make_orchestrator, session_factory, seats):
    """Amount below the schedule price: InvalidAmount, no payment, holds untouched."""
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))

    with pytest.raises(InvalidAmount):
        await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request(amount=Decimal("3.00")))

    assert await load_payment(session_factory, created.booking_id) is None
    assert [h.id for h in await load_holds(session_factory)] == created.hold_ids
    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_confirm_declined_card_keeps_holds_and_allows_retry(make_orchestrator, session_factory, seats):
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))

    with pytest.raises(PaymentFailed):
        await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request(card=DECLINED_CARD))

    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.PENDING
    assert [h.id for h in await load_holds(session_factory)] == created.hold_ids
    assert (await load_payment(session_factory, created.booking_id)).status == PaymentStatus.FAILED

    confirmed = await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())

    assert confirmed.status == BookingStatus.CONFIRMED
    assert (await load_payment(session_factory, created.booking_id)).status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_confirm_ownership_and_state_checks(make_orchestrator, seats):
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))

    with pytest.raises(NotFound):
        await orchestrator.confirm_booking(USER_ID, "missing", confirm_request())
    with pytest.raises(Forbidden):
        await orchestrator.confirm_booking(OTHER_USER_ID, created.booking_id, confirm_request())

    await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())
    with pytest.raises(InvalidState):
        await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())


@pytest.mark.asyncio
async def test_concurrent_confirms_charge_once(make_orchestrator, session_factory, collaborators, settings, seats):
    """Two confirms racing on one booking reach the provider once; the loser gets InvalidState."""
    provider = SlowCountingProvider()
    app.dependency_overrides[get_payment_provider] = lambda: provider
    first = make_orchestrator()
    created = await first.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))

    try:
        async with session_factory() as other_session:
            second = BookingOrchestrator(
                store=BookingStore(other_session),
                inventory=collaborators.inventory,
                payments=collaborators.payments,
                schedules=collaborators.schedules,
                users=collaborators.users,
                settings=settings,
            )
            results = await asyncio.gather(
                first.confirm_booking(USER_ID, created.booking_id, confirm_request()),
                second.confirm_booking(USER_ID, created.booking_id, confirm_request()),
                return_exceptions=True,
            )
    finally:
        app.dependency_overrides.pop(get_payment_provider, None)

    assert provider.charges == 1
    assert sorted(type(result).__name__ for result in results) == ["BookingActionResponse", "InvalidState"]
    confirmed = next(result for result in results if isinstance(result, BookingActionResponse))
    assert confirmed.status == BookingStatus.CONFIRMED
    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.CONFIRMED
    payment = await load_payment(session_factory, created.booking_id)
    assert payment.status == PaymentStatus.PAID
    assert Decimal(payment.amount) == PRICE
    reservations = await load_reservations(session_factory)
    assert sorted(r.seat_id for r in reservations) == sorted(booking.seat_ids)


@pytest.mark.asyncio
async def test_confirm_after_hold_expired_compensates(make_orchestrator, session_factory, seats):
    """
    Hold lost after the charge: the seat reserved in this attempt is released,
    the payment refunded and the booking cancelled.
    """
    orchestrator = make_orchestrator(COMPENSATE_ON_HOLD_LOSS=True)
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))
    await expire_holds(session_factory, [created.hold_ids[1]])
    await sweep_expired_holds(session_factory)

    with pytest.raises(HoldExpired):
        await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())

    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.CANCELLED
    statuses = await load_seat_statuses(session_factory, booking.seat_ids)
    assert set(statuses.values()) == {SeatStatus.AVAILABLE}
    assert await load_reservations(session_factory) == []
    assert await load_holds(session_factory) == []
    payment = await load_payment(session_factory, booking.id)
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refunded is True


@pytest.mark.asyncio
async def test_confirm_after_hold_expired_without_compensation(make_orchestrator, session_factory, seats):
    """Hold lost after the charge with compensation off: state is left for reconciliation."""
    orchestrator = make_orchestrator(COMPENSATE_ON_HOLD_LOSS=False)
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))
    await expire_holds(session_factory, [created.hold_ids[1]])
    await sweep_expired_holds(session_factory)

    with pytest.raises(HoldExpired):
        await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())

    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.PENDING
    payment = await load_payment(session_factory, booking.id)
    assert payment.status == PaymentStatus.PAID
    assert payment.refunded is False
    statuses = await load_seat_statuses(session_factory, booking.seat_ids)
    assert statuses[seats["A1"].id] == SeatStatus.RESERVED
    assert statuses[seats["A2"].id] == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_confirm_payment_timeout_leaves_holds(db_session, session_factory, collaborators, settings, seats):
    """A payment service timeout surfaces as CollaboratorTimeout; nothing is rolled back."""

    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    payments = PaymentClient(
        settings.PAYMENT_SERVICE_URL,
        timeout_seconds=0.1,
        internal_token=settings.INTERNAL_API_TOKEN,
        transport=httpx.MockTransport(timeout),
    )
    orchestrator = BookingOrchestrator(
        store=BookingStore(db_session),
        inventory=collaborators.inventory,
        payments=payments,
        schedules=collaborators.schedules,
        users=collaborators.users,
        settings=settings,
    )
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))

    with pytest.raises(CollaboratorTimeout):
        await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())
    await payments.aclose()

    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.PENDING
    assert [h.id for h in await load_holds(session_factory)] == created.hold_ids


# ----------------------------------------------------------------------
# Cancel
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_then_cancel_round_trip(make_orchestrator, session_factory, seats):
    """Cancel of a PENDING booking frees every seat and leaves no holds or reservations."""
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))

    cancelled = await orchestrator.cancel_booking(USER_ID, created.booking_id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.refunded is False
    assert cancelled.unreleased_seat_ids == []
    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.CANCELLED
    assert booking.cancelled_at is not None
    statuses = await load_seat_statuses(session_factory, booking.seat_ids)
    assert set(statuses.values()) == {SeatStatus.AVAILABLE}
    assert await load_holds(session_factory) == []
    assert await load_reservations(session_factory) == []


@pytest.mark.asyncio
async def test_cancel_pending_after_sweep(make_orchestrator, session_factory, seats):
    """Holds already reclaimed by the sweeper do not block the cancellation."""
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))
    await expire_holds(session_factory)
    await sweep_expired_holds(session_factory)

    cancelled = await orchestrator.cancel_booking(USER_ID, created.booking_id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.unreleased_seat_ids == []


@pytest.mark.asyncio
async def test_cancel_pending_after_partial_confirm(make_orchestrator, session_factory, seats):
    """
    A confirm that stopped after reserving some seats leaves the booking PENDING.
    Cancelling it releases those reservations and refunds the charge.
    """
    orchestrator = make_orchestrator(COMPENSATE_ON_HOLD_LOSS=False)
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))
    await expire_holds(session_factory, [created.hold_ids[1]])
    await sweep_expired_holds(session_factory)
    with pytest.raises(HoldExpired):
        await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())

    cancelled = await orchestrator.cancel_booking(USER_ID, created.booking_id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.unreleased_seat_ids == []
    assert cancelled.refunded is True
    statuses = await load_seat_statuses(session_factory, [seats["A1"].id, seats["A2"].id])
    assert set(statuses.values()) == {SeatStatus.AVAILABLE}
    assert await load_reservations(session_factory) == []
    assert await load_holds(session_factory) == []
    payment = await load_payment(session_factory, created.booking_id)
    assert payment.status == PaymentStatus.REFUNDED


@pytest.mark.asyncio
async def test_cancel_pending_keeps_seat_resold_to_another_booking(make_orchestrator, session_factory, seats):
    """A seat swept from this booking and confirmed by someone else stays theirs."""
    orchestrator = make_orchestrator()
    stale = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))
    await expire_holds(session_factory)
    await sweep_expired_holds(session_factory)
    other = await orchestrator.create_booking(OTHER_USER_ID, create_request(seats["A1"]))
    await orchestrator.confirm_booking(OTHER_USER_ID, other.booking_id, confirm_request())

    cancelled = await orchestrator.cancel_booking(USER_ID, stale.booking_id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.unreleased_seat_ids == []
    assert cancelled.refunded is False
    statuses = await load_seat_statuses(session_factory, [seats["A1"].id])
    assert statuses[seats["A1"].id] == SeatStatus.RESERVED
    [reservation] = await load_reservations(session_factory)
    assert reservation.booking_id == other.booking_id


@pytest.mark.asyncio
async def test_cancel_confirmed_booking_refunds(make_orchestrator, session_factory, seats):
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))
    await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())

    cancelled = await orchestrator.cancel_booking(USER_ID, created.booking_id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.refunded is True
    statuses = await load_seat_statuses(session_factory, [seats["A1"].id])
    assert statuses[seats["A1"].id] == SeatStatus.AVAILABLE
    assert await load_reservations(session_factory) == []
    payment = await load_payment(session_factory, created.booking_id)
    assert payment.status == PaymentStatus.REFUNDED


@pytest.mark.asyncio
async def test_cancel_confirmed_booking_refund_fails(make_orchestrator, session_factory, seats):
    """Refund failure: booking still CANCELLED, seat still released, payment not refunded."""
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))
    await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request(card=REFUND_FAILS_CARD))

    cancelled = await orchestrator.cancel_booking(USER_ID, created.booking_id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.refunded is False
    booking = await load_booking(session_factory, created.booking_id)
    assert booking.status == BookingStatus.CANCELLED
    statuses = await load_seat_statuses(session_factory, [seats["A1"].id])
    assert statuses[seats["A1"].id] == SeatStatus.AVAILABLE
    payment = await load_payment(session_factory, created.booking_id)
    assert payment.status == PaymentStatus.PAID
    assert payment.refunded is False


@pytest.mark.asyncio
async def test_status_transitions_are_monotonic(make_orchestrator, seats):
    """CANCELLED is terminal; CONFIRMED can be cancelled but never confirmed again."""
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))
    await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())
    await orchestrator.cancel_booking(USER_ID, created.booking_id)

    with pytest.raises(AlreadyCancelled):
        await orchestrator.cancel_booking(USER_ID, created.booking_id)
    with pytest.raises(InvalidState):
        await orchestrator.confirm_booking(USER_ID, created.booking_id, confirm_request())


@pytest.mark.asyncio
async def test_cancel_other_users_booking_forbidden(make_orchestrator, seats):
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))

    with pytest.raises(Forbidden):
        await orchestrator.cancel_booking(OTHER_USER_ID, created.booking_id)
    with pytest.raises(NotFound):
        await orchestrator.cancel_booking(USER_ID, "missing")


# ----------------------------------------------------------------------
# Reads
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_get_user_bookings_with_seat_details(make_orchestrator, seats):
    orchestrator = make_orchestrator()
    first = await orchestrator.create_booking(USER_ID, create_request(seats["A1"], seats["A2"]))
    second = await orchestrator.create_booking(USER_ID, create_request(seats["A3"]))
    await orchestrator.create_booking(OTHER_USER_ID, create_request(seats["A4"]))

    result = await orchestrator.get_user_bookings(USER_ID)

    assert result.count == 2
    by_id = {booking.id: booking for booking in result.bookings}
    assert set(by_id) == {first.booking_id, second.booking_id}
    assert [seat.seat_number for seat in by_id[first.booking_id].seats] == ["A1", "A2"]


@pytest.mark.asyncio
async def test_get_booking_with_schedule(make_orchestrator, seats):
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))

    booking = await orchestrator.get_booking(USER_ID, created.booking_id)

    assert booking.id == created.booking_id
    assert [seat.seat_number for seat in booking.seats] == ["A1"]
    assert booking.schedule.origin == "Yangon Central"
    assert booking.schedule.destination == "Mandalay"
    assert booking.schedule.train_number == "UP-5"

    with pytest.raises(Forbidden):
        await orchestrator.get_booking(OTHER_USER_ID, created.booking_id)


@pytest.mark.asyncio
async def test_get_booking_internal_skips_ownership(make_orchestrator, seats):
    orchestrator = make_orchestrator()
    created = await orchestrator.create_booking(USER_ID, create_request(seats["A1"]))

    record = await orchestrator.get_booking_internal(created.booking_id)

    assert record.user_id == USER_ID
    assert record.hold_ids == created.hold_ids
    with pytest.raises(NotFound):
        await orchestrator.get_booking_internal("missing")
