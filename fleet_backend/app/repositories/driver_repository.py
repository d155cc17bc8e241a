"""
Driver record store.
"""

from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.models.driver import Driver
from fleet_backend.app.models.enums import DriverStatus


class DriverRepository:
    """Repository for driver persistence."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, driver_id: int) -> Optional[Driver]:
        result = await self.db.execute(
            select(Driver).where(Driver.id == driver_id)
        )
        return result.scalar_one_or_none()

    async def find_by_ids(self, driver_ids: Iterable[int]) -> List[Driver]:
        ids = set(driver_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(Driver).where(Driver.id.in_(ids))
        )
        return list(result.scalars().all())

    async def find_by_license_number(self, license_number: str) -> Optional[Driver]:
        result = await self.db.execute(
            select(Driver).where(Driver.license_number == license_number)
        )
        return result.scalar_one_or_none()

    async def find_all(
        self,
        page: int,
        page_size: int,
        status: Optional[DriverStatus] = None
    ) -> Tuple[List[Driver], int]:
        count_query = select(func.count(Driver.id))
        query = select(Driver)
        if status is not None:
            count_query = count_query.where(Driver.status == status)
            query = query.where(Driver.status == status)

        total_result = await self.db.execute(count_query)
        total = total_result.scalar()

        offset = (page - 1) * page_size
        result = await self.db.execute(
            query.order_by(Driver.id).offset(offset).limit(page_size)
        )
        return list(result.scalars().all()), total

    async def save(self, driver: Driver) -> Driver:
        self.db.add(driver)
        await self.db.flush()
        return driver

    async def delete(self, driver: Driver) -> None:
        await self.db.delete(driver)
        await self.db.flush()
