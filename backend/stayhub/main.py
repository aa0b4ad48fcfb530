"""
StayHub Booking API - Main Application Entry Point

Booking core of a short-term rental marketplace:
- Concurrency-safe date reservation (per-listing lock + exclusion constraint)
- Payment intent issued together with the PENDING booking
- Booking state machine with background expiry and completion
- Structured logging with request correlation and Prometheus metrics
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stayhub.api.middleware import RequestLoggingMiddleware
from stayhub.api.router import api_router
from stayhub.core.config import get_settings
from stayhub.core.logging import get_logger, setup_logging
from stayhub.core.metrics import metrics_endpoint
from stayhub.db.session import Database
from stayhub.infrastructure.redis_client import RedisClient
from stayhub.services.booking_sweeper import run_booking_sweeper
from stayhub.services.strategy_factory import build_listing_lock, build_payment_gateway

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: open collaborators on startup, close them on shutdown."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    database.connect()
    app.state.database = database

    redis_client = RedisClient(
        settings.REDIS_URL,
        enabled=settings.REDIS_ENABLED and settings.LISTING_LOCK_BACKEND == "redis",
    )
    client = await redis_client.connect()
    if settings.LISTING_LOCK_BACKEND == "redis" and client is None:
        logger.warning("redis_unavailable", message="Falling back to in-process listing lock")
    app.state.redis = redis_client

    app.state.listing_lock = build_listing_lock(client)
    app.state.payment_gateway = build_payment_gateway()
    logger.info(
        "booking_core_ready",
        listing_lock=app.state.listing_lock.name,
        payment_gateway=app.state.payment_gateway.gateway_type.value,
    )

    sweeper_task = None
    if settings.SWEEPER_ENABLED:
        sweeper_task = asyncio.create_task(
            run_booking_sweeper(database, app.state.payment_gateway, settings.SWEEPER_INTERVAL_SECONDS)
        )

    yield

    if sweeper_task is not None:
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            pass

    await app.state.listing_lock.close()
    await redis_client.close()
    await database.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Booking and availability core for a short-term rental marketplace",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "listing_lock": app.state.listing_lock.name,
        "payment_gateway": app.state.payment_gateway.gateway_type.value,
        "redis": await app.state.redis.status(),
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
