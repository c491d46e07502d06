"""
Request/response models for the payment service.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from railbook.models.payment import PaymentStatus


class CardDetails(BaseModel):
    card_number: str = Field(..., min_length=12, max_length=19, pattern=r"^[0-9]+$")
    expiry_month: str = Field(..., min_length=1, max_length=2)
    expiry_year: str = Field(..., min_length=2, max_length=4)
    cvc: str = Field(..., min_length=3, max_length=4)
    zip_code: Optional[str] = Field(None, max_length=10)

    def __repr__(self) -> str:
        return f"CardDetails(last4={self.card_number[-4:]})"

    __str__ = __repr__


class PaymentRequest(BaseModel):
    booking_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    card: CardDetails


class RefundRequest(BaseModel):
    booking_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class PaymentResult(BaseModel):
    success: bool
    payment_id: Optional[str] = None
    booking_id: str
    amount: Optional[Decimal] = None
    status: Optional[PaymentStatus] = None
    message: str


class PaymentResponse(BaseModel):
    id: str
    booking_id: str
    user_id: str
    amount: Decimal
    currency: str
    status: PaymentStatus
    refunded: bool
    refunded_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}
