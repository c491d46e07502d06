"""
Request/response models for the inventory (seat ledger) service.
One explicit model per operation; these are also the wire format used by
railbook.clients.inventory.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from railbook.models.seat import SeatStatus


class HoldSeatsRequest(BaseModel):
    schedule_id: int = Field(..., gt=0)
    seat_ids: list[str] = Field(..., min_length=1, max_length=10)
    user_id: str = Field(..., min_length=1)
    ttl_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)

    @field_validator("seat_ids")
    @classmethod
    def seat_ids_unique(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("seat_ids must not contain duplicates")
        return value


class HoldResponse(BaseModel):
    id: str
    seat_id: str
    user_id: str
    expires_at: datetime

    model_config = {"from_attributes": True}


class HoldSeatsResponse(BaseModel):
    holds: list[HoldResponse]


class ConfirmSeatsRequest(BaseModel):
    hold_id: str = Field(..., min_length=1)
    booking_id: str = Field(..., min_length=1)


class ReservationResponse(BaseModel):
    id: str
    seat_id: str
    user_id: str
    booking_id: str

    model_config = {"from_attributes": True}


class ReleaseSeatsRequest(BaseModel):
    hold_id: str = Field(..., min_length=1)


class ReleaseReservedSeatRequest(BaseModel):
    seat_id: str = Field(..., min_length=1)
    booking_id: Optional[str] = None


class ReleaseResponse(BaseModel):
    message: str


class SeatDetailsRequest(BaseModel):
    seat_ids: list[str] = Field(default_factory=list, max_length=100)


class SeatInfo(BaseModel):
    id: str
    seat_number: str

    model_config = {"from_attributes": True}


class SeatDetailsResponse(BaseModel):
    seats: list[SeatInfo]


class SeatAvailability(BaseModel):
    id: str
    seat_number: str
    status: SeatStatus

    model_config = {"from_attributes": True}


class ScheduleAvailabilityResponse(BaseModel):
    schedule_id: int
    seats: list[SeatAvailability]
    available: int
    cached: bool = False


class SeatCreate(BaseModel):
    schedule_id: int = Field(..., gt=0)
    train_id: int = Field(..., gt=0)
    seat_number: str = Field(..., min_length=1, max_length=10)


class SeatResponse(BaseModel):
    id: str
    schedule_id: int
    train_id: int
    seat_number: str
    status: SeatStatus

    model_config = {"from_attributes": True}
