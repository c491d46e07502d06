"""
Seat inventory owned by the seat ledger.

Key design decisions:
- A seat's status is the single source of truth for availability
- `seat_holds.seat_id` and `reservations.seat_id` are unique: at most one hold
  and one reservation per seat, enforced by the database as the final safety net
- A hold row exists iff its seat is HELD, a reservation row iff its seat is RESERVED.
  Rows are inserted and deleted by the ledger, never updated in place
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from railbook.db.base import Base, TimestampMixin, new_id, utcnow


class SeatStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    HELD = "HELD"
    RESERVED = "RESERVED"


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(String(36), primary_key=True, default=new_id)
    schedule_id = Column(Integer, nullable=False, index=True)
    train_id = Column(Integer, nullable=False)
    seat_number = Column(String(10), nullable=False)
    status = Column(
        Enum(SeatStatus, name="seat_status", native_enum=False, length=20, create_constraint=True),
        nullable=False,
        default=SeatStatus.AVAILABLE,
    )

    hold = relationship("SeatHold", back_populates="seat", uselist=False, passive_deletes=True)
    reservation = relationship("Reservation", back_populates="seat", uselist=False, passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("schedule_id", "seat_number", name="uq_seat_schedule_number"),
        # Availability listing and hold checks filter on both
        Index("ix_seats_schedule_status", "schedule_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, schedule={self.schedule_id}, number={self.seat_number}, status={self.status})>"


class SeatHold(Base):
    __tablename__ = "seat_holds"

    id = Column(String(36), primary_key=True, default=new_id)
    seat_id = Column(String(36), ForeignKey("seats.id", ondelete="CASCADE"), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    seat = relationship("Seat", back_populates="hold")

    def __repr__(self) -> str:
        return f"<SeatHold(id={self.id}, seat={self.seat_id}, user={self.user_id}, expires_at={self.expires_at})>"


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=new_id)
    seat_id = Column(String(36), ForeignKey("seats.id", ondelete="CASCADE"), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False)
    booking_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    seat = relationship("Seat", back_populates="reservation")

    def __repr__(self) -> str:
        return f"<Reservation(id={self.id}, seat={self.seat_id}, booking={self.booking_id})>"
