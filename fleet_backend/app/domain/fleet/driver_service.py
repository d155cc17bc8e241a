"""
Driver Service (Domain Logic).

Manages driver records. Vehicle views embed a summary of their driver, so
every driver mutation invalidates the cache entries of the driver's vehicles.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.exceptions import (
    BusinessRuleViolationError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from fleet_backend.app.domain.fleet.fleet_service import vehicle_state
from fleet_backend.app.domain.fleet.unit_of_work import unit_of_work
from fleet_backend.app.models.driver import Driver
from fleet_backend.app.models.enums import DriverStatus, VehicleStatus
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.repositories.driver_repository import DriverRepository
from fleet_backend.app.repositories.vehicle_repository import VehicleRepository
from fleet_backend.app.schemas.driver import (
    DriverCreate,
    DriverListResponse,
    DriverResponse,
    DriverUpdate,
)
from fleet_backend.app.services.audit import AuditAction, AuditEntity, log_event
from fleet_backend.app.services.cache import Cache, NullCache, driver_key, keys_for_vehicle_state

logger = logging.getLogger(__name__)


class DriverService:

    def __init__(self, db: AsyncSession, cache: Optional[Cache] = None):
        self.db = db
        self.drivers = DriverRepository(db)
        self.vehicles = VehicleRepository(db)
        self.cache = cache or NullCache()

    async def list_drivers(
        self,
        page: int,
        page_size: int,
        status: Optional[DriverStatus] = None
    ) -> DriverListResponse:
        logger.info("Getting all drivers")
        logger.debug("Getting drivers - page: %s, page_size: %s, status: %s", page, page_size, status)
        drivers, total = await self.drivers.find_all(page, page_size, status)
        return DriverListResponse(
            drivers=[DriverResponse.model_validate(driver) for driver in drivers],
            total=total,
            page=page,
            page_size=page_size
        )

    async def get_driver(self, driver_id: int) -> DriverResponse:
        logger.debug("Getting driver by ID: %s", driver_id)
        return DriverResponse.model_validate(await self._require_driver(driver_id))

    async def get_driver_by_license_number(self, license_number: str) -> DriverResponse:
        logger.debug("Getting driver by license number: %s", license_number)
        driver = await self.drivers.find_by_license_number(license_number)
        if driver is None:
            raise ResourceNotFoundError("Driver", license_number, field="license number")
        return DriverResponse.model_validate(driver)

    async def create_driver(self, data: DriverCreate) -> DriverResponse:
        logger.info("Creating driver")
        logger.debug("Creating new driver with license number: %s", data.license_number)

        async with unit_of_work(self.db):
            if await self.drivers.find_by_license_number(data.license_number) is not None:
                raise ResourceConflictError(
                    f"Driver with license number {data.license_number} already exists",
                    details={"license_number": data.license_number}
                )

            driver = Driver(**data.model_dump())
            await self.drivers.save(driver)

            await log_event(
                self.db,
                action=AuditAction.DRIVER_CREATED,
                entity_type=AuditEntity.DRIVER,
                entity_id=driver.id,
                metadata={
                    "license_number": driver.license_number,
                    "license_type": driver.license_type.value
                }
            )

        return DriverResponse.model_validate(driver)

    async def update_driver(self, driver_id: int, patch: DriverUpdate) -> DriverResponse:
        logger.info("Updating driver")
        logger.debug("Updating driver with ID: %s", driver_id)
        changes = patch.changes()

        async with unit_of_work(self.db):
            driver = await self._require_driver(driver_id)

            new_number = changes.get("license_number")
            if new_number is not None and new_number != driver.license_number:
                existing = await self.drivers.find_by_license_number(new_number)
                if existing is not None and existing.id != driver_id:
                    raise ResourceConflictError(
                        f"License number {new_number} already in use",
                        details={"license_number": new_number, "driver_id": existing.id}
                    )

            for field, value in changes.items():
                setattr(driver, field, value)
            await self.drivers.save(driver)

            vehicles = await self.vehicles.find_by_driver_id(driver_id)

            await log_event(
                self.db,
                action=AuditAction.DRIVER_UPDATED,
                entity_type=AuditEntity.DRIVER,
                entity_id=driver_id,
                metadata={"updated_fields": sorted(changes)}
            )

        await self._invalidate_vehicles(driver_id, vehicles)
        return DriverResponse.model_validate(driver)

    async def delete_driver(self, driver_id: int) -> None:
        """
        Delete a driver.

        Blocked while any of the driver's vehicles is IN_USE; otherwise the
        driver's vehicles are unassigned first.
        """
        logger.info("Deleting driver")
        logger.debug("Deleting driver with ID: %s", driver_id)

        async with unit_of_work(self.db):
            driver = await self._require_driver(driver_id)
            vehicles = await self.vehicles.find_by_driver_id(driver_id)

            in_use = [vehicle.id for vehicle in vehicles if vehicle.status == VehicleStatus.IN_USE]
            if in_use:
                raise BusinessRuleViolationError(
                    f"Cannot delete driver with ID {driver_id} while vehicles {in_use} are in use",
                    details={"driver_id": driver_id, "vehicle_ids": in_use}
                )

            states = [vehicle_state(vehicle) for vehicle in vehicles]
            if vehicles:
                await self.vehicles.unassign_driver(driver_id)

            await self.drivers.delete(driver)

            await log_event(
                self.db,
                action=AuditAction.DRIVER_DELETED,
                entity_type=AuditEntity.DRIVER,
                entity_id=driver_id,
                metadata={
                    "license_number": driver.license_number,
                    "unassigned_vehicle_ids": [state["id"] for state in states]
                }
            )

        await self._invalidate_states(driver_id, states)

    async def _require_driver(self, driver_id: int) -> Driver:
        driver = await self.drivers.find_by_id(driver_id)
        if driver is None:
            raise ResourceNotFoundError("Driver", driver_id)
        return driver

    async def _invalidate_vehicles(self, driver_id: int, vehicles: List[Vehicle]) -> None:
        await self._invalidate_states(driver_id, [vehicle_state(vehicle) for vehicle in vehicles])

    async def _invalidate_states(self, driver_id: int, states: List[dict]) -> None:
        keys = {driver_key(driver_id)}
        for state in states:
            keys |= keys_for_vehicle_state(state)
        await self.cache.invalidate(*keys)
