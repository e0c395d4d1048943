"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from psycopg_pool import AsyncConnectionPool

from src.adapters.repository import InMemoryAccountStore, PostgresAccountStore, run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.exceptions import AccountError

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {"name": "buyers", "description": "Buyer registration, login, password reset and profile"},
    {"name": "sellers", "description": "Seller registration, login, password reset and profile"},
    {"name": "admins", "description": "Admin registration, login, password reset and profile"},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the account store (PostgreSQL pool or in-memory) on startup
    - Runs migrations on startup
    - Closes connection pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")

    if settings.storage_backend == "memory":
        logger.info("Using in-memory account store")
        app.state.pool = None
        app.state.store = InMemoryAccountStore()
        yield
        logger.info("Shutting down application...")
        return

    logger.info("Connecting to database...")

    # Create connection pool with explicit sizing
    pool = AsyncConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        open=False,
    )
    await pool.open()

    logger.info("Running database migrations...")
    await run_migrations(pool)

    # Store pool and store in app state for dependency injection
    app.state.pool = pool
    app.state.store = PostgresAccountStore(pool)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await pool.close()
    logger.info("Database connection pool closed")


async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Render a domain error as the failure envelope with its status code."""
    if exc.status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status,
        content={"success": False, "message": exc.message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report the first invalid field as a 400 failure envelope."""
    error = exc.errors()[0]
    message = str(error.get("msg", "Invalid request")).removeprefix("Value error, ")
    if error.get("type") != "value_error":
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        if field:
            message = f"{field}: {message}"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


def create_app() -> FastAPI:
    app = FastAPI(
        title="leelame-accounts",
        description="Buyer, seller and admin account lifecycle API - "
        "registration with email OTP, login, password reset and profiles",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    app.add_exception_handler(AccountError, account_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Include v1 API routes
    app.include_router(v1_router, prefix="/v1")

    @app.get("/health")
    async def health_check(request: Request) -> dict[str, str]:
        """
        Health check endpoint with database validation.

        Returns 200 OK if application and database are healthy.
        Raises exception if database connection fails.
        """
        pool = request.app.state.pool
        if pool is not None:
            async with pool.connection() as conn:
                await conn.execute("SELECT 1")

        return {"status": "healthy"}

    return app


app = create_app()
