"""
Public seat map with Redis caching.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from railbook.core.logging import get_logger
from railbook.db.session import get_db
from railbook.models.seat import SeatStatus
from railbook.schemas.inventory import ScheduleAvailabilityResponse, SeatAvailability
from railbook.services import seat_ledger
from railbook.services.cache_service import get_cached_availability, set_cached_availability

logger = get_logger(__name__)
router = APIRouter(prefix="/schedules", tags=["Availability"])


@router.get("/{schedule_id}/seats", response_model=ScheduleAvailabilityResponse)
async def get_schedule_availability(
    schedule_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Seat map of a schedule.
    Cached in Redis for REDIS_CACHE_TTL seconds and dropped on every hold,
    confirm and release. Display only: holds always check the database.
    """
    cached = await get_cached_availability(schedule_id)
    if cached:
        logger.info("availability_cache_hit", schedule_id=schedule_id)
        cached["cached"] = True
        return ScheduleAvailabilityResponse(**cached)

    seats = await seat_ledger.get_seat_availability(db, schedule_id)
    response = ScheduleAvailabilityResponse(
        schedule_id=schedule_id,
        seats=[SeatAvailability.model_validate(seat) for seat in seats],
        available=sum(1 for seat in seats if seat.status == SeatStatus.AVAILABLE),
        cached=False,
    )

    await set_cached_availability(schedule_id, response.model_dump(mode="json"))
    return response
