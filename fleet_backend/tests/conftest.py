"""
Centralized Test Configuration.
"""

import pytest
from datetime import date, timedelta
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from fleet_backend.app.main import app
from fleet_backend.app.db.session import get_db, Base
from fleet_backend.app.core.redis_client import get_redis
import fleet_backend.app.core.redis_client as redis_client_module
from fleet_backend.app.domain.fleet.driver_service import DriverService
from fleet_backend.app.domain.fleet.fleet_service import FleetAssignmentService
from fleet_backend.app.schemas.driver import DriverCreate
from fleet_backend.app.schemas.vehicle import VehicleCreate
from fleet_backend.app.services.cache import InMemoryCache

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed "today" for service-level tests
TODAY = date(2025, 1, 15)

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
    
    async def ping(self):
        if self._closed:
            return False
        return True
    
    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)
        
    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True
    
    async def delete(self, *keys):
        if self._closed:
            return 0
        deleted = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                deleted += 1
        return deleted

    async def incr(self, key):
        if self._closed:
            return 0
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0
        
    async def flushdb(self):
        if not self._closed:
            self.store = {}
        
    async def aclose(self):
        self._closed = True
        self.store = {}

# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """
    
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session
    
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield
    
    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    await redis_client_session.flushdb()
    
    yield
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session

@pytest.fixture
def cache():
    return InMemoryCache(ttl_seconds=300)

@pytest.fixture
def fleet_service(db_session, cache):
    """Fleet service with a fixed clock."""
    return FleetAssignmentService(db_session, cache=cache, today=lambda: TODAY)

@pytest.fixture
def driver_service(db_session, cache):
    return DriverService(db_session, cache=cache)


# Payload builders

def driver_payload(**overrides) -> dict:
    data = {
        "first_name": "Jan",
        "last_name": "Kowalski",
        "license_number": "ABC123456",
        "license_type": "C",
        "date_of_birth": "1985-04-12",
        "phone_number": "500600700",
        "email": "jan.kowalski@example.com",
        "status": "ACTIVE",
    }
    data.update(overrides)
    return data


def vehicle_payload(today: date = None, **overrides) -> dict:
    today = today or date.today()
    data = {
        "license_plate": "WX12345",
        "brand": "Volvo",
        "model": "FH16",
        "production_year": 2020,
        "type": "TRUCK",
        "registration_date": "2020-03-01",
        "technical_inspection_date": (today + timedelta(days=365)).isoformat(),
        "mileage": 120000.0,
        "status": "AVAILABLE",
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_driver(driver_service):
    """Create a driver through the service; returns the DriverResponse."""
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        overrides.setdefault("license_number", f"LIC{counter['n']:06d}")
        return await driver_service.create_driver(DriverCreate(**driver_payload(**overrides)))

    return _make


@pytest.fixture
def make_vehicle(fleet_service):
    """Create a vehicle through the service; returns the VehicleResponse."""
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        overrides.setdefault("license_plate", f"PL{counter['n']:05d}")
        return await fleet_service.create_vehicle(VehicleCreate(**vehicle_payload(today=TODAY, **overrides)))

    return _make
