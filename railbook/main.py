"""
Railbook Booking API - Main Application Entry Point

Train seat booking as a saga across three services hosted by one app:
- Inventory: seat ledger with conditional writes and a hold expiry sweeper
- Payments: charge/refund behind a pluggable provider
- Bookings: the orchestrator, talking to the other two (and to the external
  user and schedule catalogs) over HTTP only
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from railbook.core.config import get_settings
from railbook.core.logging import setup_logging, get_logger
from railbook.core.metrics import metrics_endpoint
from railbook.api.errors import register_exception_handlers
from railbook.api.router import api_router, internal_router
from railbook.api.middleware import RequestLoggingMiddleware
from railbook.clients.registry import build_collaborators
from railbook.db.session import dispose_engine, get_session_factory, init_engine
from railbook.services.cache_service import get_redis, close_redis, get_cache_stats, invalidate_availability
from railbook.services.hold_sweeper import HoldSweeper

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    init_engine()

    # Initialize Redis connection
    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    app.state.collaborators = build_collaborators(settings)

    sweeper = None
    if settings.HOLD_SWEEPER_ENABLED:
        sweeper = HoldSweeper(
            get_session_factory(),
            interval_seconds=settings.HOLD_SWEEP_INTERVAL_SECONDS,
            on_released=invalidate_availability,
        )
        sweeper.start()
    else:
        logger.warning("hold_sweeper_disabled")

    yield

    # Cleanup
    if sweeper is not None:
        await sweeper.stop()
    await app.state.collaborators.aclose()
    await close_redis()
    await dispose_engine()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Train seat booking saga: seat holds, payment and confirmation",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Routes
app.include_router(api_router)
app.include_router(internal_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
