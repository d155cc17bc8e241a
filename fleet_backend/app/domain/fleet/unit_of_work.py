"""
Transaction boundary for fleet mutations.

Every mutating fleet operation runs inside ``unit_of_work``: reads,
validation and writes share one database transaction that is committed on
success and rolled back on any exception.
"""

import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.exceptions import ResourceConflictError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def unit_of_work(db: AsyncSession):
    try:
        yield db
        await db.commit()
    except IntegrityError as e:
        # Unique indexes catch what a concurrent writer slipped past our checks
        await db.rollback()
        logger.warning("Integrity error, transaction rolled back: %s", e.orig)
        raise ResourceConflictError(
            "The change conflicts with an existing record",
            details={"reason": str(e.orig)}
        ) from e
    except Exception:
        await db.rollback()
        raise
