"""
Fleet Assignment Service (Domain Logic).

Owns the state-transition rules for vehicles and their assignment to
drivers. Raw storage goes through the vehicle and driver repositories;
lookups go through an injected read-through cache.

Flow of every mutation:
1. Load the affected records
2. Validate the business rules
3. Apply and persist the change (one transaction)
4. Invalidate every cache key the change could affect
5. Return the updated vehicle view
"""

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.core.config import settings
from fleet_backend.app.core.exceptions import (
    BusinessRuleViolationError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from fleet_backend.app.domain.fleet.inspection_policy import validate_technical_inspection_date
from fleet_backend.app.domain.fleet.license_rules import can_driver_operate_vehicle
from fleet_backend.app.domain.fleet.unit_of_work import unit_of_work
from fleet_backend.app.models.driver import Driver
from fleet_backend.app.models.enums import DriverStatus, VehicleStatus, VehicleType
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.repositories.driver_repository import DriverRepository
from fleet_backend.app.repositories.vehicle_repository import VehicleRepository
from fleet_backend.app.schemas.vehicle import (
    AssignedDriver,
    VehicleCreate,
    VehicleListResponse,
    VehicleResponse,
    VehicleUpdate,
)
from fleet_backend.app.services.audit import AuditAction, AuditEntity, log_event
from fleet_backend.app.services.cache import (
    Cache,
    NullCache,
    brand_and_model_key,
    driver_key,
    keys_for_vehicle_state,
    license_plate_key,
    status_key,
    type_key,
    vehicle_key,
)

logger = logging.getLogger(__name__)


def vehicle_state(vehicle: Vehicle) -> Dict[str, Any]:
    """Snapshot of the fields vehicle cache keys are derived from."""
    return {
        "id": vehicle.id,
        "license_plate": vehicle.license_plate,
        "status": vehicle.status,
        "type": vehicle.type,
        "brand": vehicle.brand,
        "model": vehicle.model,
        "driver_id": vehicle.driver_id,
    }


class FleetAssignmentService:
    """
    Vehicle lifecycle and vehicle-driver assignment rules.

    Args:
        db: Database session; one service instance per request
        cache: Read-through cache for lookups (defaults to no caching)
        today: Clock returning the current date
        inspection_warning_months: Advisory window for inspections
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[Cache] = None,
        today: Callable[[], date] = date.today,
        inspection_warning_months: Optional[int] = None
    ):
        self.db = db
        self.vehicles = VehicleRepository(db)
        self.drivers = DriverRepository(db)
        self.cache = cache or NullCache()
        self.today = today
        if inspection_warning_months is None:
            inspection_warning_months = settings.inspection_warning_months
        self.inspection_warning_months = inspection_warning_months

    # Queries

    async def get_all_vehicles(self, page: int, page_size: int) -> VehicleListResponse:
        logger.info("Getting all vehicles")
        logger.debug("Getting vehicles with pagination - page: %s, page_size: %s", page, page_size)
        vehicles, total = await self.vehicles.find_all(page, page_size)
        return VehicleListResponse(
            vehicles=await self._to_responses(vehicles),
            total=total,
            page=page,
            page_size=page_size
        )

    async def get_vehicle_by_id(self, vehicle_id: int) -> VehicleResponse:
        logger.info("Getting vehicle by ID")
        logger.debug("Getting vehicle by ID: %s", vehicle_id)
        key = vehicle_key(vehicle_id)
        cached, generation = await self.cache.get(key)
        if cached is not None:
            return VehicleResponse.model_validate(cached)

        vehicle = await self._require_vehicle(vehicle_id)
        response = await self._to_response_with_driver(vehicle)
        await self._write_back(key, response.model_dump(mode="json"), generation)
        return response

    async def get_vehicle_by_license_plate(self, license_plate: str) -> VehicleResponse:
        logger.info("Getting vehicle by license plate")
        logger.debug("Getting vehicle by license plate: %s", license_plate)
        key = license_plate_key(license_plate)
        cached, generation = await self.cache.get(key)
        if cached is not None:
            return VehicleResponse.model_validate(cached)

        vehicle = await self.vehicles.find_by_license_plate(license_plate)
        if vehicle is None:
            raise ResourceNotFoundError("Vehicle", license_plate, field="license plate")
        response = await self._to_response_with_driver(vehicle)
        await self._write_back(key, response.model_dump(mode="json"), generation)
        return response

    async def get_vehicles_by_status(self, status: VehicleStatus) -> List[VehicleResponse]:
        logger.info("Getting vehicles by status")
        logger.debug("Getting vehicles by status: %s", status)
        return await self._cached_list(
            status_key(status),
            lambda: self.vehicles.find_by_status(status)
        )

    async def get_vehicles_by_type(self, vehicle_type: VehicleType) -> List[VehicleResponse]:
        logger.info("Getting vehicles by type")
        logger.debug("Getting vehicles by type: %s", vehicle_type)
        return await self._cached_list(
            type_key(vehicle_type),
            lambda: self.vehicles.find_by_type(vehicle_type)
        )

    async def get_vehicles_by_brand_and_model(self, brand: str, model: str) -> List[VehicleResponse]:
        logger.info("Getting vehicles by brand and model")
        logger.debug("Getting vehicles by brand: %s and model: %s", brand, model)
        return await self._cached_list(
            brand_and_model_key(brand, model),
            lambda: self.vehicles.find_by_brand_and_model(brand, model)
        )

    async def get_vehicles_by_driver_id(self, driver_id: int) -> List[VehicleResponse]:
        """Vehicles currently assigned to a driver; the driver itself must exist."""
        logger.info("Getting vehicles by driver")
        logger.debug("Getting vehicles by driver ID: %s", driver_id)
        await self._require_driver(driver_id)
        return await self._cached_list(
            driver_key(driver_id),
            lambda: self.vehicles.find_by_driver_id(driver_id)
        )

    # Mutations

    async def create_vehicle(self, data: VehicleCreate) -> VehicleResponse:
        logger.info("Creating vehicle")
        logger.debug("Creating new vehicle with license plate: %s", data.license_plate)

        async with unit_of_work(self.db):
            if await self.vehicles.find_by_license_plate(data.license_plate) is not None:
                raise ResourceConflictError(
                    f"Vehicle with license plate {data.license_plate} already exists",
                    details={"license_plate": data.license_plate}
                )

            advisory = self._check_inspection(data.license_plate, data.technical_inspection_date)
            self._check_out_of_order_unassigned(data.status, data.driver_id)

            driver = None
            if data.driver_id is not None:
                driver = await self._require_driver(data.driver_id)

            vehicle = Vehicle(**data.model_dump())
            await self.vehicles.save(vehicle)

            await log_event(
                self.db,
                action=AuditAction.VEHICLE_CREATED,
                entity_type=AuditEntity.VEHICLE,
                entity_id=vehicle.id,
                metadata={
                    "license_plate": vehicle.license_plate,
                    "driver_id": vehicle.driver_id
                }
            )

        await self._invalidate(vehicle_state(vehicle))
        return self._to_response(vehicle, driver, advisory)

    async def update_vehicle(self, vehicle_id: int, patch: VehicleUpdate) -> VehicleResponse:
        """
        Apply a partial update to a vehicle.

        The inspection check runs against the resulting inspection date
        even when the patch does not touch it. A patch without a driver id
        leaves the vehicle unassigned.
        """
        logger.info("Updating vehicle")
        logger.debug("Updating vehicle with ID: %s", vehicle_id)
        changes = patch.changes()

        async with unit_of_work(self.db):
            vehicle = await self._require_vehicle(vehicle_id)
            before = vehicle_state(vehicle)

            new_plate = changes.get("license_plate")
            if new_plate is not None and new_plate != vehicle.license_plate:
                existing = await self.vehicles.find_by_license_plate(new_plate)
                if existing is not None and existing.id != vehicle_id:
                    raise ResourceConflictError(
                        f"License plate {new_plate} already in use",
                        details={"license_plate": new_plate, "vehicle_id": existing.id}
                    )

            advisory = self._check_inspection(
                changes.get("license_plate", vehicle.license_plate),
                changes.get("technical_inspection_date", vehicle.technical_inspection_date)
            )

            self._check_out_of_order_unassigned(
                changes.get("status", vehicle.status), changes["driver_id"]
            )

            driver = None
            if changes["driver_id"] is not None:
                driver = await self._require_driver(changes["driver_id"])

            for field, value in changes.items():
                setattr(vehicle, field, value)
            await self.vehicles.save(vehicle)

            await log_event(
                self.db,
                action=AuditAction.VEHICLE_UPDATED,
                entity_type=AuditEntity.VEHICLE,
                entity_id=vehicle.id,
                metadata={"updated_fields": sorted(changes)}
            )

        await self._invalidate(before, vehicle_state(vehicle))
        return self._to_response(vehicle, driver, advisory)

    async def delete_vehicle(self, vehicle_id: int) -> None:
        """
        Delete a vehicle.

        Blocked while the vehicle is IN_USE by its driver; a vehicle that
        has a driver but is not in use is unassigned first.
        """
        logger.info("Deleting vehicle")
        logger.debug("Deleting vehicle with ID: %s", vehicle_id)

        async with unit_of_work(self.db):
            vehicle = await self._require_vehicle(vehicle_id)
            state = vehicle_state(vehicle)

            if vehicle.driver_id is not None and vehicle.status == VehicleStatus.IN_USE:
                raise BusinessRuleViolationError(
                    f"Cannot delete vehicle with ID {vehicle_id} as it is currently "
                    f"in use by driver {vehicle.driver_id}",
                    details={"vehicle_id": vehicle_id, "driver_id": vehicle.driver_id}
                )

            if vehicle.driver_id is not None:
                vehicle.driver_id = None
                await self.vehicles.save(vehicle)

            await self.vehicles.delete(vehicle)

            await log_event(
                self.db,
                action=AuditAction.VEHICLE_DELETED,
                entity_type=AuditEntity.VEHICLE,
                entity_id=vehicle_id,
                metadata={
                    "license_plate": state["license_plate"],
                    "unassigned_driver_id": state["driver_id"]
                }
            )

        await self._invalidate(state)

    async def assign_vehicle_to_driver(self, vehicle_id: int, driver_id: int) -> VehicleResponse:
        """
        Assign an unassigned vehicle to a driver.

        Validates, in order:
        - Vehicle exists and is not OUT_OF_ORDER
        - Vehicle has no driver yet (no reassignment through this call)
        - Driver exists and is not SUSPENDED
        - Driver's license type allows operating the vehicle type
        """
        logger.info("Assigning vehicle to driver")
        logger.debug("Assigning vehicle ID: %s to driver ID: %s", vehicle_id, driver_id)

        async with unit_of_work(self.db):
            vehicle = await self._require_vehicle(vehicle_id)
            before = vehicle_state(vehicle)

            if vehicle.status == VehicleStatus.OUT_OF_ORDER:
                raise BusinessRuleViolationError(
                    "Cannot assign vehicle with status OUT_OF_ORDER to a driver",
                    details={"vehicle_id": vehicle_id}
                )

            if vehicle.driver_id is not None:
                raise ResourceConflictError(
                    "Vehicle is already assigned to a driver",
                    details={"vehicle_id": vehicle_id, "driver_id": vehicle.driver_id}
                )

            driver = await self._require_driver(driver_id)

            if driver.status == DriverStatus.SUSPENDED:
                raise BusinessRuleViolationError(
                    "Cannot assign vehicle to suspended driver",
                    details={"driver_id": driver_id}
                )

            if not can_driver_operate_vehicle(driver.license_type, vehicle.type):
                raise BusinessRuleViolationError(
                    f"Driver's license type {driver.license_type.value} does not allow "
                    f"operating vehicle of type {vehicle.type.value}",
                    details={
                        "license_type": driver.license_type.value,
                        "vehicle_type": vehicle.type.value
                    }
                )

            # Another transaction may have assigned the vehicle since it was read
            if not await self.vehicles.assign_driver_if_unassigned(vehicle_id, driver_id):
                raise ResourceConflictError(
                    "Vehicle is already assigned to a driver",
                    details={"vehicle_id": vehicle_id}
                )

            await log_event(
                self.db,
                action=AuditAction.DRIVER_ASSIGNED,
                entity_type=AuditEntity.VEHICLE,
                entity_id=vehicle_id,
                metadata={"driver_id": driver_id}
            )

        await self._invalidate(before, vehicle_state(vehicle))
        return self._to_response(vehicle, driver)

    async def remove_driver_from_vehicle(self, vehicle_id: int) -> VehicleResponse:
        logger.info("Removing driver from vehicle")
        logger.debug("Removing driver from vehicle ID: %s", vehicle_id)

        async with unit_of_work(self.db):
            vehicle = await self._require_vehicle(vehicle_id)
            if vehicle.driver_id is None:
                raise BusinessRuleViolationError(
                    "Vehicle has no assigned driver",
                    details={"vehicle_id": vehicle_id}
                )
            before = vehicle_state(vehicle)

            vehicle.driver_id = None
            await self.vehicles.save(vehicle)

            await log_event(
                self.db,
                action=AuditAction.DRIVER_UNASSIGNED,
                entity_type=AuditEntity.VEHICLE,
                entity_id=vehicle_id,
                metadata={"driver_id": before["driver_id"]}
            )

        await self._invalidate(before, vehicle_state(vehicle))
        return self._to_response(vehicle)

    async def update_vehicle_mileage(self, vehicle_id: int, mileage: float) -> VehicleResponse:
        logger.info("Updating mileage for vehicle")
        logger.debug("Updating mileage for vehicle ID: %s to %s", vehicle_id, mileage)
        if mileage < 0:
            raise BusinessRuleViolationError(
                "Mileage cannot be negative",
                details={"mileage": mileage}
            )

        async with unit_of_work(self.db):
            vehicle = await self._require_vehicle(vehicle_id)
            previous = vehicle.mileage
            vehicle.mileage = mileage
            await self.vehicles.save(vehicle)

            await log_event(
                self.db,
                action=AuditAction.VEHICLE_MILEAGE_UPDATED,
                entity_type=AuditEntity.VEHICLE,
                entity_id=vehicle_id,
                metadata={"previous": previous, "mileage": mileage}
            )

        await self._invalidate(vehicle_state(vehicle))
        return await self._to_response_with_driver(vehicle)

    async def update_vehicle_status(self, vehicle_id: int, status: VehicleStatus) -> VehicleResponse:
        """
        Overwrite a vehicle's status.

        No cross-field validation: an assigned vehicle set to OUT_OF_ORDER
        keeps its driver.
        """
        logger.info("Updating status for vehicle")
        logger.debug("Updating status for vehicle ID: %s to %s", vehicle_id, status)

        async with unit_of_work(self.db):
            vehicle = await self._require_vehicle(vehicle_id)
            before = vehicle_state(vehicle)
            vehicle.status = status
            await self.vehicles.save(vehicle)

            if status == VehicleStatus.OUT_OF_ORDER and vehicle.driver_id is not None:
                logger.warning(
                    "Vehicle %s set to OUT_OF_ORDER while assigned to driver %s",
                    vehicle_id, vehicle.driver_id
                )

            await log_event(
                self.db,
                action=AuditAction.VEHICLE_STATUS_UPDATED,
                entity_type=AuditEntity.VEHICLE,
                entity_id=vehicle_id,
                metadata={"previous": before["status"].value, "status": status.value}
            )

        await self._invalidate(before, vehicle_state(vehicle))
        return await self._to_response_with_driver(vehicle)

    # Helpers

    def _check_out_of_order_unassigned(self, status: VehicleStatus, driver_id: Optional[int]) -> None:
        if status == VehicleStatus.OUT_OF_ORDER and driver_id is not None:
            raise BusinessRuleViolationError(
                "Cannot assign vehicle with status OUT_OF_ORDER to a driver",
                details={"driver_id": driver_id}
            )

    def _check_inspection(self, license_plate: str, inspection_date: date) -> Optional[str]:
        return validate_technical_inspection_date(
            license_plate,
            inspection_date,
            today=self.today(),
            warning_months=self.inspection_warning_months
        )

    async def _require_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.vehicles.find_by_id(vehicle_id)
        if vehicle is None:
            raise ResourceNotFoundError("Vehicle", vehicle_id)
        return vehicle

    async def _require_driver(self, driver_id: int) -> Driver:
        driver = await self.drivers.find_by_id(driver_id)
        if driver is None:
            raise ResourceNotFoundError("Driver", driver_id)
        return driver

    async def _invalidate(self, *states: Dict[str, Any]) -> None:
        keys = set()
        for state in states:
            keys |= keys_for_vehicle_state(state)
        logger.debug("Invalidating cache keys: %s", sorted(keys))
        await self.cache.invalidate(*keys)

    async def _cached_list(
        self,
        key: str,
        loader: Callable[[], Awaitable[List[Vehicle]]]
    ) -> List[VehicleResponse]:
        cached, generation = await self.cache.get(key)
        if cached is not None:
            return [VehicleResponse.model_validate(item) for item in cached]

        responses = await self._to_responses(await loader())
        await self._write_back(
            key, [response.model_dump(mode="json") for response in responses], generation
        )
        return responses

    async def _write_back(self, key: str, data: Any, generation: Optional[int]) -> None:
        # generation was read before the database load; None means the cache is unreachable
        if generation is not None:
            await self.cache.set(key, data, generation)

    def _to_response(
        self,
        vehicle: Vehicle,
        driver: Optional[Driver] = None,
        advisory: Optional[str] = None
    ) -> VehicleResponse:
        response = VehicleResponse.model_validate(vehicle)
        if driver is not None and vehicle.driver_id == driver.id:
            response.driver = AssignedDriver.model_validate(driver)
        if advisory:
            response.advisories = [advisory]
        return response

    async def _to_response_with_driver(self, vehicle: Vehicle) -> VehicleResponse:
        driver = None
        if vehicle.driver_id is not None:
            driver = await self.drivers.find_by_id(vehicle.driver_id)
        return self._to_response(vehicle, driver)

    async def _to_responses(self, vehicles: Iterable[Vehicle]) -> List[VehicleResponse]:
        vehicles = list(vehicles)
        drivers = await self.drivers.find_by_ids(
            vehicle.driver_id for vehicle in vehicles if vehicle.driver_id is not None
        )
        drivers_by_id = {driver.id: driver for driver in drivers}
        return [
            self._to_response(vehicle, drivers_by_id.get(vehicle.driver_id))
            for vehicle in vehicles
        ]
