"""
Service dependencies for FastAPI.

Builds one fleet service per request around the request's database
session and the configured read-through cache.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.config import settings
from fleet_backend.app.core.redis_client import get_redis
from fleet_backend.app.db.session import get_db
from fleet_backend.app.domain.fleet.driver_service import DriverService
from fleet_backend.app.domain.fleet.fleet_service import FleetAssignmentService
from fleet_backend.app.services.cache import Cache, build_cache

# The in-memory backend must outlive a single request
_memory_cache = build_cache("memory", ttl_seconds=settings.cache_ttl_seconds)


async def get_cache(redis=Depends(get_redis)) -> Cache:
    """
    FastAPI dependency for the vehicle cache.
    
    The backend is chosen by ``settings.cache_backend``.
    """
    if settings.cache_backend == "memory":
        return _memory_cache
    return build_cache(settings.cache_backend, redis_client=redis, ttl_seconds=settings.cache_ttl_seconds)


async def get_fleet_service(
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache)
) -> FleetAssignmentService:
    return FleetAssignmentService(db, cache=cache)


async def get_driver_service(
    db: AsyncSession = Depends(get_db),
    cache: Cache = Depends(get_cache)
) -> DriverService:
    return DriverService(db, cache=cache)
