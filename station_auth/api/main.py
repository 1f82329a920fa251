"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers, routers and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from station_auth.adapters.repository.memory import InMemoryStore
from station_auth.adapters.repository.postgres import PostgresUserRepository, run_migrations
from station_auth.api.dependencies import get_token_codec
from station_auth.api.errors import register_exception_handlers
from station_auth.api.v1 import router as v1_router
from station_auth.config.settings import Settings, get_settings
from station_auth.domain.auth import AuthService
from station_auth.domain.ports import UserRepository

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {"name": "auth", "description": "Account registration, login and profile"},
    {"name": "admin", "description": "User directory and account management (admin only)"},
    {"name": "events", "description": "Capacity-bounded event registration"},
]


def provision_root_admin(repository: UserRepository, settings: Settings) -> None:
    """Create the protected root administrator on first start."""
    service = AuthService(
        repository=repository,
        tokens=get_token_codec(settings),
        bcrypt_cost=settings.bcrypt_cost,
    )
    service.provision_root_admin(
        settings.root_admin_email,
        settings.root_admin_password,
        settings.root_admin_display_name,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the database connection pool (or in-memory store) on startup
    - Runs migrations on startup
    - Provisions the root administrator
    - Closes connection pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")

    pool: ConnectionPool | None = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)

        # Store pool in app state for dependency injection
        app.state.pool = pool
        repository: UserRepository = PostgresUserRepository(pool)
    else:
        logger.info("Using in-memory store")
        app.state.store = InMemoryStore()
        repository = app.state.store

    provision_root_admin(repository, settings)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="station-auth",
    description="Community radio accounts, roles and capacity-bounded event registration",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = getattr(request.app.state, "pool", None)
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
