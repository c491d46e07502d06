"""
Clients for the external user and schedule catalogs.
"""

from decimal import Decimal

from railbook.clients.base import ServiceClient
from railbook.core.exceptions import NotFound
from railbook.schemas.catalog import ScheduleDetails, SchedulePrice, ScheduleSummary, UserSummary


class UserClient(ServiceClient):
    collaborator = "user"

    async def validate_user(self, user_id: str) -> UserSummary:
        return await self._call(
            "validate_user",
            "GET",
            f"/users/{user_id}",
            response_model=UserSummary,
            not_found_message=f"User {user_id} not found",
        )


class ScheduleClient(ServiceClient):
    collaborator = "schedule"

    async def validate_schedule(self, schedule_id: int) -> ScheduleSummary:
        summary = await self._call(
            "validate_schedule",
            "GET",
            f"/schedules/{schedule_id}/validate",
            response_model=ScheduleSummary,
            not_found_message=f"Schedule {schedule_id} not found",
        )
        if not summary.valid:
            raise NotFound(f"Schedule {schedule_id} not found")
        return summary

    async def get_schedule_price(self, schedule_id: int) -> Decimal:
        result = await self._call(
            "get_schedule_price",
            "GET",
            f"/schedules/{schedule_id}/price",
            response_model=SchedulePrice,
            not_found_message=f"Schedule {schedule_id} not found",
        )
        return result.price

    async def get_schedule_details(self, schedule_id: int) -> ScheduleDetails:
        return await self._call(
            "get_schedule_details",
            "GET",
            f"/schedules/{schedule_id}",
            response_model=ScheduleDetails,
            not_found_message=f"Schedule {schedule_id} not found",
        )
