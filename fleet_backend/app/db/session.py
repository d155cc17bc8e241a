"""
Database session configuration.

Builds the async engine for the configured database URL (PostgreSQL via
asyncpg in deployment, SQLite via aiosqlite for local runs) and hands out
one session per request.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from fleet_backend.app.core.config import settings


def engine_options(database_url: str) -> dict:
    """Engine keyword arguments; SQLite's pool takes no sizing options."""
    options = {"echo": settings.db_echo, "future": True}
    if make_url(database_url).get_backend_name() != "sqlite":
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

# Services commit explicitly through unit_of_work
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Closing the session discards anything left uncommitted.
    """
    async with AsyncSessionLocal() as session:
        yield session
