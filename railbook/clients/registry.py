"""
Process-wide collaborator clients.

Built once in the application lifespan and closed on shutdown. Tests build
their own registry with in-process transports.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from railbook.clients.catalog import ScheduleClient, UserClient
from railbook.clients.inventory import InventoryClient
from railbook.clients.payments import PaymentClient
from railbook.core.config import Settings


@dataclass
class Collaborators:
    inventory: InventoryClient
    payments: PaymentClient
    schedules: ScheduleClient
    users: UserClient

    async def aclose(self) -> None:
        for client in (self.inventory, self.payments, self.schedules, self.users):
            await client.aclose()


def build_collaborators(
    settings: Settings,
    transports: Optional[dict[str, httpx.AsyncBaseTransport]] = None,
) -> Collaborators:
    """`transports` maps a collaborator name to a custom transport (tests only)."""
    transports = transports or {}

    def options(name: str) -> dict:
        return {
            "timeout_seconds": settings.COLLABORATOR_TIMEOUT_SECONDS,
            "internal_token": settings.INTERNAL_API_TOKEN,
            "max_connections": settings.COLLABORATOR_MAX_CONNECTIONS,
            "transport": transports.get(name),
        }

    return Collaborators(
        inventory=InventoryClient(settings.INVENTORY_SERVICE_URL, **options("inventory")),
        payments=PaymentClient(settings.PAYMENT_SERVICE_URL, **options("payment")),
        schedules=ScheduleClient(settings.SCHEDULE_SERVICE_URL, **options("schedule")),
        users=UserClient(settings.USER_SERVICE_URL, **options("user")),
    )


def get_collaborators(request: Request) -> Collaborators:
    return request.app.state.collaborators
