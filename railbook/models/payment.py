"""
Payment record owned by the payment service.

Keyed by (booking_id, user_id) rather than booking id alone so a retried
attempt after a declined card reuses the FAILED record instead of adding a row.
The record is written as PROCESSING before the provider is called and settles
to PAID or FAILED afterwards.
"""

import enum

from sqlalchemy import Column, String, Boolean, DateTime, Enum, Numeric, UniqueConstraint, CheckConstraint

from railbook.db.base import Base, TimestampMixin, new_id


class PaymentStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    booking_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(64), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(
        Enum(PaymentStatus, name="payment_status", native_enum=False, length=20, create_constraint=True),
        nullable=False,
    )
    refunded = Column(Boolean, nullable=False, default=False)
    provider_ref = Column(String(255), nullable=True)
    refund_ref = Column(String(255), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("booking_id", "user_id", name="uq_payment_booking_user"),
        CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking={self.booking_id}, status={self.status}, amount={self.amount})>"
