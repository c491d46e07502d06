"""
Payment service endpoints. Internal callers only.

A declined card is a normal 200 response with success=false; only provider
outages and invalid states are errors.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from railbook.core.security import require_internal_caller
from railbook.db.session import get_db
from railbook.schemas.payment import PaymentRequest, PaymentResponse, PaymentResult, RefundRequest
from railbook.services import payment_service
from railbook.services.interfaces.payment_provider import PaymentProvider
from railbook.services.provider_factory import get_payment_provider

router = APIRouter(
    prefix="/internal/payments",
    tags=["Internal: Payments"],
    dependencies=[Depends(require_internal_caller)],
)


@router.post("/charge", response_model=PaymentResult)
async def charge(
    request: PaymentRequest,
    db: AsyncSession = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    return await payment_service.process_payment(db, provider, request)


@router.post("/refund", response_model=PaymentResult)
async def refund(
    request: RefundRequest,
    db: AsyncSession = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    return await payment_service.process_refund(db, provider, request.booking_id, request.user_id)


@router.get("/{booking_id}", response_model=PaymentResponse)
async def get_payment(booking_id: str, user_id: str, db: AsyncSession = Depends(get_db)):
    return await payment_service.get_payment(db, booking_id, user_id)
