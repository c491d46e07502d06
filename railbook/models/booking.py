"""
Booking record owned by the booking orchestrator.

Key design decisions:
- Seat and hold ids are stored as JSON lists: they reference rows owned by the
  inventory service, so there is no foreign key to enforce
- Status is monotonic (see railbook.domain.booking_state); records are never deleted
- hold_ids is cleared once the holds have been converted into reservations
"""

import enum

from sqlalchemy import Column, String, Integer, DateTime, Enum, JSON, Text, Index

from railbook.db.base import Base, TimestampMixin, new_id


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    schedule_id = Column(Integer, nullable=False)
    seat_ids = Column(JSON, nullable=False, default=list)
    hold_ids = Column(JSON, nullable=False, default=list)
    status = Column(
        Enum(BookingStatus, name="booking_status", native_enum=False, length=20, create_constraint=True),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    notes = Column(Text, nullable=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # "My bookings, newest first"
        Index("ix_bookings_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, schedule={self.schedule_id}, status={self.status})>"
