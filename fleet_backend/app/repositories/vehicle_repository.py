"""
Vehicle record store.

Thin async SQLAlchemy access layer used by the fleet service. Every method
returns ORM instances (or ``None``/lists) and never commits; the caller owns
the transaction.
"""

from typing import List, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.models.enums import VehicleStatus, VehicleType


class VehicleRepository:
    """Repository for vehicle persistence."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_id(self, vehicle_id: int) -> Optional[Vehicle]:
        result = await self.db.execute(
            select(Vehicle).where(Vehicle.id == vehicle_id)
        )
        return result.scalar_one_or_none()

    async def find_by_license_plate(self, license_plate: str) -> Optional[Vehicle]:
        result = await self.db.execute(
            select(Vehicle).where(Vehicle.license_plate == license_plate)
        )
        return result.scalar_one_or_none()

    async def find_by_status(self, status: VehicleStatus) -> List[Vehicle]:
        result = await self.db.execute(
            select(Vehicle).where(Vehicle.status == status).order_by(Vehicle.id)
        )
        return list(result.scalars().all())

    async def find_by_type(self, vehicle_type: VehicleType) -> List[Vehicle]:
        result = await self.db.execute(
            select(Vehicle).where(Vehicle.type == vehicle_type).order_by(Vehicle.id)
        )
        return list(result.scalars().all())

    async def find_by_brand_and_model(self, brand: str, model: str) -> List[Vehicle]:
        result = await self.db.execute(
            select(Vehicle).where(
                Vehicle.brand == brand,
                Vehicle.model == model
            ).order_by(Vehicle.id)
        )
        return list(result.scalars().all())

    async def find_by_driver_id(self, driver_id: int) -> List[Vehicle]:
        result = await self.db.execute(
            select(Vehicle).where(Vehicle.driver_id == driver_id).order_by(Vehicle.id)
        )
        return list(result.scalars().all())

    async def find_all(self, page: int, page_size: int) -> Tuple[List[Vehicle], int]:
        """
        Get one page of vehicles.
        
        Args:
            page: 1-based page number
            page_size: Items per page
        
        Returns:
            (vehicles on the page, total vehicle count)
        """
        total_result = await self.db.execute(select(func.count(Vehicle.id)))
        total = total_result.scalar()

        offset = (page - 1) * page_size
        result = await self.db.execute(
            select(Vehicle).order_by(Vehicle.id).offset(offset).limit(page_size)
        )
        return list(result.scalars().all()), total

    async def save(self, vehicle: Vehicle) -> Vehicle:
        self.db.add(vehicle)
        await self.db.flush()
        return vehicle

    async def delete(self, vehicle: Vehicle) -> None:
        await self.db.delete(vehicle)
        await self.db.flush()

    async def assign_driver_if_unassigned(self, vehicle_id: int, driver_id: int) -> bool:
        """
        Link a driver to a vehicle only if the vehicle has no driver yet.
        
        The check and the write are one UPDATE statement, so of two
        concurrent calls on the same vehicle at most one matches a row.
        
        Returns:
            True if the vehicle was assigned, False if it already had a driver
        """
        result = await self.db.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id, Vehicle.driver_id.is_(None))
            .values(driver_id=driver_id)
        )
        return result.rowcount == 1

    async def unassign_driver(self, driver_id: int) -> int:
        """Clear the driver link on every vehicle of a driver. Returns the row count."""
        result = await self.db.execute(
            update(Vehicle)
            .where(Vehicle.driver_id == driver_id)
            .values(driver_id=None)
        )
        return result.rowcount
