"""
Client for the inventory service (seat ledger).
"""

from typing import Optional

from railbook.clients.base import ServiceClient
from railbook.core.logging import get_logger
from railbook.schemas.inventory import (
    ConfirmSeatsRequest,
    HoldResponse,
    HoldSeatsRequest,
    HoldSeatsResponse,
    ReleaseReservedSeatRequest,
    ReleaseResponse,
    ReleaseSeatsRequest,
    ReservationResponse,
    SeatDetailsRequest,
    SeatDetailsResponse,
    SeatInfo,
)

logger = get_logger(__name__)


class InventoryClient(ServiceClient):
    collaborator = "inventory"

    async def hold_seats(
        self,
        schedule_id: int,
        seat_ids: list[str],
        user_id: str,
        ttl_minutes: Optional[int] = None,
    ) -> list[HoldResponse]:
        logger.debug("inventory_hold_seats", schedule_id=schedule_id, seat_ids=seat_ids)
        result = await self._call(
            "hold_seats",
            "POST",
            "/seats/hold",
            body=HoldSeatsRequest(
                schedule_id=schedule_id,
                seat_ids=seat_ids,
                user_id=user_id,
                ttl_minutes=ttl_minutes,
            ),
            response_model=HoldSeatsResponse,
        )
        return result.holds

    async def confirm_seats(self, hold_id: str, booking_id: str) -> ReservationResponse:
        return await self._call(
            "confirm_seats",
            "POST",
            "/seats/confirm",
            body=ConfirmSeatsRequest(hold_id=hold_id, booking_id=booking_id),
            response_model=ReservationResponse,
        )

    async def release_seats(self, hold_id: str) -> ReleaseResponse:
        return await self._call(
            "release_seats",
            "POST",
            "/seats/release",
            body=ReleaseSeatsRequest(hold_id=hold_id),
            response_model=ReleaseResponse,
        )

    async def release_reserved_seat(self, seat_id: str, booking_id: Optional[str] = None) -> ReleaseResponse:
        return await self._call(
            "release_reserved_seat",
            "POST",
            "/seats/release-reserved",
            body=ReleaseReservedSeatRequest(seat_id=seat_id, booking_id=booking_id),
            response_model=ReleaseResponse,
        )

    async def get_seat_details(self, seat_ids: list[str]) -> list[SeatInfo]:
        if not seat_ids:
            return []
        result = await self._call(
            "get_seat_details",
            "POST",
            "/seats/details",
            body=SeatDetailsRequest(seat_ids=seat_ids),
            response_model=SeatDetailsResponse,
        )
        return result.seats
