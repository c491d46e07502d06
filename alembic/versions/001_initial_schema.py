"""Initial schema: seats, seat_holds, reservations, bookings, payments.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Seats table (inventory service)
    op.create_table(
        "seats",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("schedule_id", sa.Integer(), nullable=False),
        sa.Column("train_id", sa.Integer(), nullable=False),
        sa.Column("seat_number", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="AVAILABLE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('AVAILABLE', 'HELD', 'RESERVED')", name="seat_status"),
        sa.UniqueConstraint("schedule_id", "seat_number", name="uq_seat_schedule_number"),
    )
    # Seat map reads and the hold precondition both filter on schedule + status
    op.create_index("ix_seats_schedule_id", "seats", ["schedule_id"])
    op.create_index("ix_seats_schedule_status", "seats", ["schedule_id", "status"])

    # Seat holds: at most one per seat, enforced by the unique seat_id
    op.create_table(
        "seat_holds",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("seat_id", sa.String(36), sa.ForeignKey("seats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("seat_id", name="uq_seat_holds_seat_id"),
    )
    # The sweeper scans by expiry on every cycle
    op.create_index("ix_seat_holds_expires_at", "seat_holds", ["expires_at"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("seat_id", sa.String(36), sa.ForeignKey("seats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("booking_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("seat_id", name="uq_reservations_seat_id"),
    )
    op.create_index("ix_reservations_booking_id", "reservations", ["booking_id"])

    # Bookings table (booking service); seat and hold ids reference another service
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("schedule_id", sa.Integer(), nullable=False),
        sa.Column("seat_ids", sa.JSON(), nullable=False),
        sa.Column("hold_ids", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('PENDING', 'CONFIRMED', 'CANCELLED')", name="booking_status"),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_user_created", "bookings", ["user_id", "created_at"])

    # Payments table (payment service)
    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("refunded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("provider_ref", sa.String(255), nullable=True),
        sa.Column("refund_ref", sa.String(255), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('PROCESSING', 'PAID', 'FAILED', 'REFUNDED')", name="payment_status"),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        # One payment per booking and customer: a retried confirm can never charge twice
        sa.UniqueConstraint("booking_id", "user_id", name="uq_payment_booking_user"),
    )
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("reservations")
    op.drop_table("seat_holds")
    op.drop_table("seats")
