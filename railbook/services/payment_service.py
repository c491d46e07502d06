"""
Payment service: charges and refunds for bookings.

Payments are keyed by (booking_id, user_id). Before the provider is called the
attempt is claimed by committing the record as PROCESSING, so two confirms of
the same booking can never both reach the provider: the second one finds the
claim (or trips the unique constraint) and is rejected with InvalidState. A
PAID record can never be charged again, and a FAILED record is reused by the
next attempt instead of creating a second row.

A record left PROCESSING means the provider outcome is unknown (the process
died mid-charge) and needs reconciliation against the provider.

Provider wording (decline codes and the like) is logged but never returned:
callers only get a generic message.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from railbook.core.config import get_settings
from railbook.core.exceptions import InvalidState, NotFound, PaymentFailed
from railbook.core.logging import get_logger
from railbook.core.metrics import payments_processed
from railbook.db.base import utcnow
from railbook.models.payment import Payment, PaymentStatus
from railbook.schemas.payment import PaymentRequest, PaymentResult
from railbook.services.interfaces.payment_provider import PaymentProvider

logger = get_logger(__name__)


async def _find_payment(db: AsyncSession, booking_id: str, user_id: str, lock: bool = False) -> Optional[Payment]:
    stmt = select(Payment).where(Payment.booking_id == booking_id, Payment.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def _claim_attempt(db: AsyncSession, existing: Optional[Payment], request: PaymentRequest) -> Payment:
    """Commit the attempt as PROCESSING. Only one caller per booking gets past this."""
    if existing is None:
        payment = Payment(
            booking_id=request.booking_id,
            user_id=request.user_id,
            amount=request.amount,
            currency=get_settings().PAYMENT_CURRENCY,
            status=PaymentStatus.PROCESSING,
            refunded=False,
        )
        db.add(payment)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning("payment_claim_conflict", booking_id=request.booking_id)
            raise InvalidState("Payment for this booking is already in progress") from e
        return payment

    claimed = await db.execute(
        update(Payment)
        .where(Payment.id == existing.id, Payment.status == PaymentStatus.FAILED)
        .values(status=PaymentStatus.PROCESSING, amount=request.amount, provider_ref=None)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        await db.rollback()
        logger.warning("payment_claim_conflict", booking_id=request.booking_id, payment_id=existing.id)
        raise InvalidState("Payment for this booking is already in progress")
    await db.commit()
    await db.refresh(existing)
    logger.info("payment_retry", booking_id=request.booking_id, payment_id=existing.id)
    return existing


async def process_payment(db: AsyncSession, provider: PaymentProvider, request: PaymentRequest) -> PaymentResult:
    """
    Charge the card for a booking.
    A decline is returned as success=False; it is not an exception.
    """
    logger.info("payment_started", booking_id=request.booking_id, amount=str(request.amount))

    existing = await _find_payment(db, request.booking_id, request.user_id, lock=True)
    if existing is not None and existing.status == PaymentStatus.PAID:
        raise InvalidState("Payment already exists for this booking")
    if existing is not None and existing.status == PaymentStatus.REFUNDED:
        raise InvalidState("Payment for this booking was refunded")
    if existing is not None and existing.status == PaymentStatus.PROCESSING:
        raise InvalidState("Payment for this booking is already in progress")

    payment = await _claim_attempt(db, existing, request)

    metadata = {"booking_id": request.booking_id, "user_id": request.user_id}
    try:
        outcome = await provider.charge(request.amount, get_settings().PAYMENT_CURRENCY, request.card, metadata)
    except Exception as e:
        payment.status = PaymentStatus.FAILED
        # Keep the FAILED attempt even though the request fails
        await db.commit()
        payments_processed.labels(operation="charge", status=PaymentStatus.FAILED.value).inc()
        logger.error(
            "payment_provider_error",
            booking_id=request.booking_id,
            payment_id=payment.id,
            provider=provider.name,
            error=str(e),
        )
        raise PaymentFailed("Payment provider error") from e

    payment.provider_ref = outcome.provider_ref
    if outcome.succeeded:
        payment.status = PaymentStatus.PAID
        await db.flush()
        payments_processed.labels(operation="charge", status=PaymentStatus.PAID.value).inc()
        logger.info(
            "payment_succeeded",
            booking_id=request.booking_id,
            payment_id=payment.id,
            provider_ref=outcome.provider_ref,
        )
        return PaymentResult(
            success=True,
            payment_id=payment.id,
            booking_id=request.booking_id,
            amount=payment.amount,
            status=PaymentStatus.PAID,
            message="Payment processed successfully",
        )

    payment.status = PaymentStatus.FAILED
    await db.flush()
    payments_processed.labels(operation="charge", status=PaymentStatus.FAILED.value).inc()
    logger.warning(
        "payment_declined",
        booking_id=request.booking_id,
        payment_id=payment.id,
        provider_message=outcome.provider_message,
    )
    return PaymentResult(
        success=False,
        payment_id=payment.id,
        booking_id=request.booking_id,
        amount=payment.amount,
        status=PaymentStatus.FAILED,
        message="Payment was declined",
    )


async def process_refund(db: AsyncSession, provider: PaymentProvider, booking_id: str, user_id: str) -> PaymentResult:
    """
    Refund the PAID payment of a booking in full.
    Provider failure is returned as success=False and leaves the record PAID.
    """
    logger.info("refund_started", booking_id=booking_id)

    payment = await _find_payment(db, booking_id, user_id, lock=True)
    if payment is None:
        raise NotFound("No payment found for this booking")
    if payment.status == PaymentStatus.PROCESSING:
        raise InvalidState("Payment for this booking is still being processed")
    if payment.status == PaymentStatus.FAILED:
        raise InvalidState("Cannot refund a failed payment")
    if payment.status == PaymentStatus.REFUNDED or payment.refunded:
        raise InvalidState("Payment has already been refunded")
    if not payment.provider_ref:
        raise InvalidState("Payment has no provider reference to refund")

    amount = Decimal(payment.amount)
    try:
        outcome = await provider.refund(payment.provider_ref, amount, {"booking_id": booking_id, "user_id": user_id})
    except Exception as e:
        logger.error("refund_provider_error", booking_id=booking_id, payment_id=payment.id, error=str(e))
        raise PaymentFailed("Refund could not be processed") from e

    if not outcome.succeeded:
        logger.warning(
            "refund_declined",
            booking_id=booking_id,
            payment_id=payment.id,
            provider_message=outcome.provider_message,
        )
        return PaymentResult(
            success=False,
            payment_id=payment.id,
            booking_id=booking_id,
            amount=amount,
            status=payment.status,
            message="Refund could not be processed",
        )

    payment.status = PaymentStatus.REFUNDED
    payment.refunded = True
    payment.refunded_at = utcnow()
    payment.refund_ref = outcome.refund_ref
    await db.flush()

    payments_processed.labels(operation="refund", status=PaymentStatus.REFUNDED.value).inc()
    logger.info("refund_succeeded", booking_id=booking_id, payment_id=payment.id, refund_ref=outcome.refund_ref)
    return PaymentResult(
        success=True,
        payment_id=payment.id,
        booking_id=booking_id,
        amount=amount,
        status=PaymentStatus.REFUNDED,
        message="Refund processed successfully",
    )


async def get_payment(db: AsyncSession, booking_id: str, user_id: str) -> Payment:
    payment = await _find_payment(db, booking_id, user_id)
    if payment is None:
        raise NotFound("Payment not found for this booking")
    return payment
