"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.api.auth import router as auth_router
from src.api.dependencies import build_registration_service
from src.api.errors import register_exception_handlers
from src.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "auth",
        "description": "Signup with email verification, login, password reset and onboarding",
    },
]


def purge_expired_registrations(pool: ConnectionPool, settings: Settings) -> None:
    """Scheduled job: remove pending registrations past their expiry."""
    try:
        build_registration_service(pool, settings).purge_expired()
    except Exception:
        logger.exception("Expired registration sweep failed")


def start_scheduler(pool: ConnectionPool, settings: Settings) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        purge_expired_registrations,
        "interval",
        seconds=settings.purge_interval_seconds,
        args=[pool, settings],
        id="purge_expired_registrations",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates database connection pool on startup
    - Runs migrations on startup
    - Starts the expired registration sweep
    - Stops the sweep and closes the pool on shutdown
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    logger.info("Starting application...")
    logger.info("Connecting to database...")

    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)

    app.state.pool = pool
    scheduler = start_scheduler(pool, settings)

    logger.info(
        "Application startup complete (email=%s, chat=%s)", settings.email_backend, settings.chat_backend
    )

    yield

    logger.info("Shutting down application...")
    scheduler.shutdown(wait=False)
    pool.close()
    logger.info("Database connection pool closed")


app = FastAPI(
    title="duk",
    description="Signup verification API - pending registrations, email verification and sessions",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

register_exception_handlers(app)
app.include_router(auth_router, prefix="/api")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    with pool.connection() as conn:
        conn.execute("SELECT 1")

    return {"status": "healthy"}
