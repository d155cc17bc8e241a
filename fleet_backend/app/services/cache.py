"""
Read-through cache for vehicle lookups.

The fleet service depends only on the ``Cache`` interface (get / set /
invalidate). Values are JSON-compatible data; the Redis backend stores
them serialized, the in-memory backend keeps them per process, and the
null backend caches nothing.

Every key carries a generation counter that ``invalidate`` bumps. ``get``
returns the generation current at read time and ``set`` stores it with the
value; an entry whose generation is behind the counter reads as a miss. A
reader that loaded from the database before a concurrent invalidation can
therefore never publish its stale view.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Set, Tuple

from redis.exceptions import RedisError

from fleet_backend.app.core.exceptions import CacheInvalidationError

logger = logging.getLogger(__name__)


# Cache key builders, one per lookup parameter

def vehicle_key(vehicle_id: Any) -> str:
    return f"vehicle:{vehicle_id}"


def license_plate_key(license_plate: str) -> str:
    return f"licensePlate:{license_plate}"


def status_key(status: Any) -> str:
    return f"status:{getattr(status, 'value', status)}"


def type_key(vehicle_type: Any) -> str:
    return f"type:{getattr(vehicle_type, 'value', vehicle_type)}"


def brand_and_model_key(brand: str, model: str) -> str:
    return f"brandAndModel:{brand}:{model}"


def driver_key(driver_id: Any) -> str:
    return f"driver:{driver_id}"


def keys_for_vehicle_state(state: Dict[str, Any]) -> Set[str]:
    """
    All cache keys a vehicle with the given field values can appear under.

    ``state`` holds ``id``, ``license_plate``, ``status``, ``type``,
    ``brand``, ``model`` and ``driver_id``.
    """
    keys = {
        vehicle_key(state["id"]),
        license_plate_key(state["license_plate"]),
        status_key(state["status"]),
        type_key(state["type"]),
        brand_and_model_key(state["brand"], state["model"]),
    }
    if state.get("driver_id") is not None:
        keys.add(driver_key(state["driver_id"]))
    return keys


# (cached data or None, generation to pass to ``set`` or None to skip caching)
CacheRead = Tuple[Optional[Any], Optional[int]]


class Cache:
    """Cache capability injected into the fleet service."""

    async def get(self, key: str) -> CacheRead:
        raise NotImplementedError

    async def set(self, key: str, data: Any, generation: int) -> None:
        raise NotImplementedError

    async def invalidate(self, *keys: str) -> None:
        raise NotImplementedError


class NullCache(Cache):
    """Cache that never stores anything."""

    async def get(self, key: str) -> CacheRead:
        return None, None

    async def set(self, key: str, data: Any, generation: int) -> None:
        return None

    async def invalidate(self, *keys: str) -> None:
        return None


class InMemoryCache(Cache):
    """Process-local cache with per-entry expiry."""

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds
        self._store: Dict[str, dict] = {}
        self._generations: Dict[str, int] = {}

    async def get(self, key: str) -> CacheRead:
        generation = self._generations.get(key, 0)
        entry = self._store.get(key)
        if not entry:
            return None, generation

        if datetime.utcnow() > entry["expires_at"] or entry["generation"] != generation:
            del self._store[key]
            return None, generation

        return json.loads(entry["data"]), generation

    async def set(self, key: str, data: Any, generation: int) -> None:
        if generation != self._generations.get(key, 0):
            return
        self._store[key] = {
            "data": json.dumps(data),
            "generation": generation,
            "expires_at": datetime.utcnow() + timedelta(seconds=self.ttl_seconds)
        }

    async def invalidate(self, *keys: str) -> None:
        for key in keys:
            self._generations[key] = self._generations.get(key, 0) + 1
            self._store.pop(key, None)

    async def clear(self) -> None:
        self._store.clear()


class RedisCache(Cache):
    """
    Redis-backed cache.

    Each entry is stored as ``{"generation": n, "data": ...}`` next to a
    ``gen:`` counter key. Reads that fail on a Redis error fall through to
    the database and skip the write-back. A failed invalidation raises
    ``CacheInvalidationError``; the mutation before it is already committed.
    """

    def __init__(self, client, ttl_seconds: int = 300, prefix: str = "fleet:"):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _generation_key(self, key: str) -> str:
        return f"{self.prefix}gen:{key}"

    async def get(self, key: str) -> CacheRead:
        try:
            raw_generation = await self.client.get(self._generation_key(key))
            raw = await self.client.get(self._key(key))
        except RedisError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None, None

        generation = int(raw_generation) if raw_generation is not None else 0
        if raw is None:
            return None, generation
        entry = json.loads(raw)
        if entry.get("generation") != generation:
            return None, generation
        return entry["data"], generation

    async def set(self, key: str, data: Any, generation: int) -> None:
        entry = json.dumps({"generation": generation, "data": data})
        try:
            await self.client.set(self._key(key), entry, ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    async def invalidate(self, *keys: str) -> None:
        if not keys:
            return
        try:
            # Counters first: a write-back racing this call is then already stale
            for key in keys:
                await self.client.incr(self._generation_key(key))
            await self.client.delete(*[self._key(key) for key in keys])
        except RedisError as e:
            logger.exception("Cache invalidation failed for %s", sorted(keys))
            raise CacheInvalidationError(sorted(keys)) from e


def build_cache(backend: str, redis_client=None, ttl_seconds: int = 300) -> Cache:
    """Create the cache configured by ``backend`` ("redis", "memory" or "none")."""
    if backend == "redis":
        return RedisCache(redis_client, ttl_seconds=ttl_seconds)
    if backend == "memory":
        return InMemoryCache(ttl_seconds=ttl_seconds)
    if backend == "none":
        return NullCache()
    raise ValueError(f"Unknown cache backend: {backend}")
