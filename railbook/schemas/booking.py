"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from railbook.models.booking import BookingStatus
from railbook.schemas.inventory import SeatInfo
from railbook.schemas.payment import CardDetails


class BookingCreate(BaseModel):
    schedule_id: int = Field(..., gt=0)
    seat_ids: list[str] = Field(..., min_length=1, max_length=10)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("seat_ids")
    @classmethod
    def seat_ids_unique(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("seat_ids must not contain duplicates")
        return value


class BookingConfirm(BaseModel):
    amount: Decimal = Field(..., gt=0)
    card: CardDetails


class BookingActionResponse(BaseModel):
    booking_id: str
    status: BookingStatus
    hold_ids: list[str]
    message: str


class BookingCancelResponse(BaseModel):
    booking_id: str
    status: BookingStatus
    refunded: bool
    unreleased_seat_ids: list[str] = Field(default_factory=list)
    message: str


class BookingDetails(BaseModel):
    id: str
    schedule_id: int
    seats: list[SeatInfo]
    status: BookingStatus
    notes: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class ScheduleDisplay(BaseModel):
    origin: str
    destination: str
    departure_time: datetime
    arrival_time: datetime
    train_number: str
    train_name: str


class BookingWithSchedule(BookingDetails):
    schedule: ScheduleDisplay


class UserBookingsResponse(BaseModel):
    bookings: list[BookingDetails]
    count: int


class BookingRecord(BaseModel):
    """Full stored entity, served to trusted internal callers only."""

    id: str
    user_id: str
    schedule_id: int
    seat_ids: list[str]
    hold_ids: list[str]
    status: BookingStatus
    notes: Optional[str]
    created_at: datetime
    confirmed_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    model_config = {"from_attributes": True}
