"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from railbook.api.routes import availability, bookings, internal_bookings, inventory, payments

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(availability.router)

internal_router = APIRouter()
internal_router.include_router(inventory.router)
internal_router.include_router(payments.router)
internal_router.include_router(internal_bookings.router)
