"""
Response models for the external user and schedule catalogs.
Only the fields the booking saga reads are declared; anything else the
catalogs send is ignored.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class UserSummary(BaseModel):
    id: str
    email: Optional[str] = None
    role: Optional[str] = None

    model_config = {"coerce_numbers_to_str": True}


class ScheduleSummary(BaseModel):
    id: int
    valid: bool = True


class SchedulePrice(BaseModel):
    schedule_id: int
    price: Decimal


class StationRef(BaseModel):
    name: str


class TrainRef(BaseModel):
    train_number: str
    name: str


class ScheduleDetails(BaseModel):
    id: int
    departure_station: StationRef
    arrival_station: StationRef
    departure_time: datetime
    arrival_time: datetime
    train: TrainRef
