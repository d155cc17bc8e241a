"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Manager Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fleet_backend.app.core.config import settings
from fleet_backend.app.core.logging import configure_logging
from fleet_backend.app.core.observability import ObservabilityMiddleware
from fleet_backend.app.core.redis_client import ping_redis
from fleet_backend.app.api.v1.router import router as api_v1_router
from fleet_backend.app.db.session import engine, Base
from fleet_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from fleet_backend.app.models.driver import Driver
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.models.audit_log import AuditLog

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    1. Creates database tables on startup.
    2. Disposes the engine on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started (cache backend: %s)", settings.app_name, settings.cache_backend)
    yield
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Vehicle and driver records with assignment rules",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    
    The service stays healthy without Redis; lookups then go to the database.
    
    Returns:
        dict: Status, application information and cache backend state
    """
    cache_status = settings.cache_backend
    if settings.cache_backend == "redis":
        cache_status = "redis: up" if await ping_redis() else "redis: down"
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "cache": cache_status,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.
    
    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Fleet Manager Backend API",
        "docs": "/docs",
        "health": "/health",
    }
