"""
Request-scoped dependencies shared by the route modules.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from railbook.clients.registry import Collaborators, get_collaborators
from railbook.core.config import Settings, get_settings
from railbook.db.session import get_db
from railbook.services.booking_orchestrator import BookingOrchestrator
from railbook.services.booking_store import BookingStore


def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
    settings: Settings = Depends(get_settings),
) -> BookingOrchestrator:
    return BookingOrchestrator(
        store=BookingStore(db),
        inventory=collaborators.inventory,
        payments=collaborators.payments,
        schedules=collaborators.schedules,
        users=collaborators.users,
        settings=settings,
    )
