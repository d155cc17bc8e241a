"""
Tests for the Fleet Assignment Service.

Covers vehicle lifecycle, assignment rules and the three error kinds
against an in-memory database with a fixed clock.
"""

import pytest
from datetime import timedelta
from sqlalchemy import select, func

from fleet_backend.app.core.exceptions import (
    BusinessRuleViolationError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from fleet_backend.app.domain.fleet.inspection_policy import add_months
from fleet_backend.app.models.audit_log import AuditLog
from fleet_backend.app.models.enums import VehicleStatus, VehicleType
from fleet_backend.app.models.vehicle import Vehicle
from fleet_backend.app.schemas.vehicle import VehicleCreate, VehicleUpdate
from fleet_backend.app.services.audit import AuditAction

from conftest import TODAY, vehicle_payload


async def count_vehicles(db_session) -> int:
    result = await db_session.execute(select(func.count(Vehicle.id)))
    return result.scalar()


# Create Vehicle

@pytest.mark.asyncio
async def test_create_vehicle(fleet_service, make_vehicle):
    vehicle = await make_vehicle(license_plate="WX12345")

    assert vehicle.id is not None
    assert vehicle.license_plate == "WX12345"
    assert vehicle.status == VehicleStatus.AVAILABLE
    assert vehicle.driver_id is None
    assert vehicle.advisories == []

    fetched = await fleet_service.get_vehicle_by_id(vehicle.id)
    assert fetched.license_plate == "WX12345"


@pytest.mark.asyncio
async def test_create_vehicle_duplicate_plate_conflicts(fleet_service, make_vehicle, db_session):
    await make_vehicle(license_plate="WX12345")

    with pytest.raises(ResourceConflictError) as exc_info:
        await make_vehicle(license_plate="WX12345")

    assert "already exists" in exc_info.value.message
    assert await count_vehicles(db_session) == 1


@pytest.mark.asyncio
async def test_create_vehicle_with_expired_inspection_fails(make_vehicle, db_session):
    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await make_vehicle(technical_inspection_date=(TODAY - timedelta(days=1)).isoformat())

    assert "Technical inspection has expired" in exc_info.value.message
    assert await count_vehicles(db_session) == 0


@pytest.mark.asyncio
async def test_create_vehicle_inspection_due_soon_adds_advisory(make_vehicle):
    vehicle = await make_vehicle(technical_inspection_date=(TODAY + timedelta(days=10)).isoformat())

    assert vehicle.id is not None
    assert len(vehicle.advisories) == 1
    assert "expiring soon" in vehicle.advisories[0]


@pytest.mark.asyncio
async def test_create_vehicle_inspection_two_months_away_is_silent(make_vehicle):
    vehicle = await make_vehicle(technical_inspection_date=add_months(TODAY, 2).isoformat())

    assert vehicle.advisories == []


@pytest.mark.asyncio
async def test_create_vehicle_linked_to_driver(make_vehicle, make_driver):
    driver = await make_driver()
    vehicle = await make_vehicle(driver_id=driver.id)

    assert vehicle.driver_id == driver.id
    assert vehicle.driver.id == driver.id
    assert vehicle.driver.last_name == "Kowalski"


@pytest.mark.asyncio
async def test_create_out_of_order_vehicle_with_driver_fails(make_vehicle, make_driver, db_session):
    driver = await make_driver()

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await make_vehicle(status="OUT_OF_ORDER", driver_id=driver.id)

    assert "OUT_OF_ORDER" in exc_info.value.message
    assert await count_vehicles(db_session) == 0


@pytest.mark.asyncio
async def test_create_vehicle_with_unknown_driver_fails(make_vehicle, db_session):
    with pytest.raises(ResourceNotFoundError) as exc_info:
        await make_vehicle(driver_id=999)

    assert exc_info.value.message == "Driver with ID 999 not found"
    assert await count_vehicles(db_session) == 0


# Update Vehicle

@pytest.mark.asyncio
async def test_update_vehicle_only_applies_sent_fields(fleet_service, make_vehicle):
    vehicle = await make_vehicle(brand="Volvo", model="FH16", mileage=1000.0)

    updated = await fleet_service.update_vehicle(vehicle.id, VehicleUpdate(model="FH13"))

    assert updated.model == "FH13"
    assert updated.brand == "Volvo"
    assert updated.mileage == 1000.0


@pytest.mark.asyncio
async def test_update_vehicle_unknown_id(fleet_service):
    with pytest.raises(ResourceNotFoundError):
        await fleet_service.update_vehicle(404, VehicleUpdate(brand="MAN"))


@pytest.mark.asyncio
async def test_update_vehicle_plate_collision_conflicts(fleet_service, make_vehicle):
    await make_vehicle(license_plate="AAA111")
    second = await make_vehicle(license_plate="BBB222")

    with pytest.raises(ResourceConflictError) as exc_info:
        await fleet_service.update_vehicle(second.id, VehicleUpdate(license_plate="AAA111"))

    assert "already in use" in exc_info.value.message
    unchanged = await fleet_service.get_vehicle_by_id(second.id)
    assert unchanged.license_plate == "BBB222"


@pytest.mark.asyncio
async def test_update_vehicle_keeping_own_plate_is_allowed(fleet_service, make_vehicle):
    vehicle = await make_vehicle(license_plate="AAA111")

    updated = await fleet_service.update_vehicle(
        vehicle.id, VehicleUpdate(license_plate="AAA111", brand="Scania")
    )

    assert updated.brand == "Scania"


@pytest.mark.asyncio
async def test_update_vehicle_with_expired_inspection_leaves_record_unchanged(fleet_service, make_vehicle):
    vehicle = await make_vehicle(brand="Volvo")

    with pytest.raises(BusinessRuleViolationError):
        await fleet_service.update_vehicle(
            vehicle.id,
            VehicleUpdate(brand="MAN", technical_inspection_date=TODAY - timedelta(days=3))
        )

    unchanged = await fleet_service.get_vehicle_by_id(vehicle.id)
    assert unchanged.brand == "Volvo"


@pytest.mark.asyncio
async def test_update_vehicle_rechecks_stored_inspection_date(fleet_service, make_vehicle):
    vehicle = await make_vehicle(technical_inspection_date=(TODAY + timedelta(days=5)).isoformat())

    updated = await fleet_service.update_vehicle(vehicle.id, VehicleUpdate(brand="MAN"))

    assert len(updated.advisories) == 1


@pytest.mark.asyncio
async def test_update_vehicle_relinks_driver(fleet_service, make_vehicle, make_driver):
    first = await make_driver()
    second = await make_driver(last_name="Nowak")
    vehicle = await make_vehicle(driver_id=first.id)

    updated = await fleet_service.update_vehicle(vehicle.id, VehicleUpdate(driver_id=second.id))

    assert updated.driver_id == second.id
    assert updated.driver.last_name == "Nowak"


@pytest.mark.asyncio
async def test_update_vehicle_with_unknown_driver_fails(fleet_service, make_vehicle):
    vehicle = await make_vehicle()

    with pytest.raises(ResourceNotFoundError):
        await fleet_service.update_vehicle(vehicle.id, VehicleUpdate(driver_id=12345))


@pytest.mark.asyncio
async def test_update_vehicle_without_driver_field_clears_assignment(fleet_service, make_vehicle, make_driver):
    driver = await make_driver()
    vehicle = await make_vehicle(driver_id=driver.id)

    updated = await fleet_service.update_vehicle(vehicle.id, VehicleUpdate(brand="DAF"))

    assert updated.brand == "DAF"
    assert updated.driver_id is None
    assert updated.driver is None
    assert await fleet_service.get_vehicles_by_driver_id(driver.id) == []


@pytest.mark.asyncio
async def test_update_vehicle_resending_driver_keeps_assignment(fleet_service, make_vehicle, make_driver):
    driver = await make_driver()
    vehicle = await make_vehicle(driver_id=driver.id)

    updated = await fleet_service.update_vehicle(
        vehicle.id, VehicleUpdate(brand="DAF", driver_id=driver.id)
    )

    assert updated.driver_id == driver.id
    assert updated.driver.id == driver.id


@pytest.mark.asyncio
async def test_update_vehicle_to_out_of_order_with_driver_fails(fleet_service, make_vehicle, make_driver):
    driver = await make_driver()
    vehicle = await make_vehicle()

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await fleet_service.update_vehicle(
            vehicle.id, VehicleUpdate(status=VehicleStatus.OUT_OF_ORDER, driver_id=driver.id)
        )

    assert "OUT_OF_ORDER" in exc_info.value.message
    unchanged = await fleet_service.get_vehicle_by_id(vehicle.id)
    assert unchanged.status == VehicleStatus.AVAILABLE
    assert unchanged.driver_id is None


@pytest.mark.asyncio
async def test_update_out_of_order_vehicle_without_driver_is_allowed(fleet_service, make_vehicle):
    vehicle = await make_vehicle(status="OUT_OF_ORDER")

    updated = await fleet_service.update_vehicle(vehicle.id, VehicleUpdate(mileage=10.0))

    assert updated.status == VehicleStatus.OUT_OF_ORDER
    assert updated.mileage == 10.0


@pytest.mark.asyncio
async def test_clearing_driver_then_removing_driver_fails(fleet_service, make_vehicle, make_driver):
    """Updating driver_id to null clears the assignment; removal then has nothing to remove."""
    driver = await make_driver()
    vehicle = await make_vehicle(driver_id=driver.id)

    updated = await fleet_service.update_vehicle(vehicle.id, VehicleUpdate(driver_id=None))
    assert updated.driver_id is None
    assert updated.driver is None

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await fleet_service.remove_driver_from_vehicle(vehicle.id)
    assert "no assigned driver" in exc_info.value.message


# Delete Vehicle

@pytest.mark.asyncio
async def test_delete_vehicle(fleet_service, make_vehicle, db_session):
    vehicle = await make_vehicle()

    await fleet_service.delete_vehicle(vehicle.id)

    assert await count_vehicles(db_session) == 0
    with pytest.raises(ResourceNotFoundError):
        await fleet_service.get_vehicle_by_id(vehicle.id)


@pytest.mark.asyncio
async def test_delete_unknown_vehicle(fleet_service):
    with pytest.raises(ResourceNotFoundError):
        await fleet_service.delete_vehicle(1)


@pytest.mark.asyncio
async def test_delete_vehicle_in_use_by_driver_fails(fleet_service, make_vehicle, make_driver, db_session):
    driver = await make_driver()
    vehicle = await make_vehicle(driver_id=driver.id, status="IN_USE")

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await fleet_service.delete_vehicle(vehicle.id)

    assert "currently in use" in exc_info.value.message
    assert await count_vehicles(db_session) == 1
    still_there = await fleet_service.get_vehicle_by_id(vehicle.id)
    assert still_there.driver_id == driver.id


@pytest.mark.asyncio
async def test_delete_assigned_vehicle_not_in_use_clears_relation(fleet_service, make_vehicle, make_driver):
    driver = await make_driver()
    vehicle = await make_vehicle(driver_id=driver.id, status="AVAILABLE")
    assert len(await fleet_service.get_vehicles_by_driver_id(driver.id)) == 1

    await fleet_service.delete_vehicle(vehicle.id)

    assert await fleet_service.get_vehicles_by_driver_id(driver.id) == []


@pytest.mark.asyncio
async def test_delete_in_use_vehicle_without_driver_succeeds(fleet_service, make_vehicle, db_session):
    vehicle = await make_vehicle(status="IN_USE")

    await fleet_service.delete_vehicle(vehicle.id)

    assert await count_vehicles(db_session) == 0


# Assign Vehicle To Driver

@pytest.mark.asyncio
async def test_assign_vehicle_to_driver(fleet_service, make_vehicle, make_driver):
    driver = await make_driver(license_type="C")
    vehicle = await make_vehicle(type="TRUCK")

    assigned = await fleet_service.assign_vehicle_to_driver(vehicle.id, driver.id)

    assert assigned.driver_id == driver.id
    assert assigned.driver.license_type == "C"
    by_driver = await fleet_service.get_vehicles_by_driver_id(driver.id)
    assert [v.id for v in by_driver] == [vehicle.id]


@pytest.mark.asyncio
async def test_assign_unknown_vehicle(fleet_service, make_driver):
    driver = await make_driver()

    with pytest.raises(ResourceNotFoundError) as exc_info:
        await fleet_service.assign_vehicle_to_driver(77, driver.id)
    assert exc_info.value.message == "Vehicle with ID 77 not found"


@pytest.mark.asyncio
async def test_assign_unknown_driver(fleet_service, make_vehicle):
    vehicle = await make_vehicle()

    with pytest.raises(ResourceNotFoundError) as exc_info:
        await fleet_service.assign_vehicle_to_driver(vehicle.id, 77)
    assert exc_info.value.message == "Driver with ID 77 not found"


@pytest.mark.asyncio
@pytest.mark.parametrize("driver_status", ["ACTIVE", "SUSPENDED"])
async def test_assign_out_of_order_vehicle_fails(fleet_service, make_vehicle, make_driver, driver_status):
    """OUT_OF_ORDER blocks assignment regardless of driver eligibility."""
    driver = await make_driver(license_type="C", status=driver_status)
    vehicle = await make_vehicle(type="TRUCK", status="OUT_OF_ORDER")

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await fleet_service.assign_vehicle_to_driver(vehicle.id, driver.id)

    assert "OUT_OF_ORDER" in exc_info.value.message


@pytest.mark.asyncio
async def test_assign_already_assigned_vehicle_conflicts(fleet_service, make_vehicle, make_driver):
    first = await make_driver(license_type="C")
    second = await make_driver(license_type="CE")
    vehicle = await make_vehicle(type="VAN")
    await fleet_service.assign_vehicle_to_driver(vehicle.id, first.id)

    with pytest.raises(ResourceConflictError) as exc_info:
        await fleet_service.assign_vehicle_to_driver(vehicle.id, second.id)

    assert "already assigned" in exc_info.value.message
    current = await fleet_service.get_vehicle_by_id(vehicle.id)
    assert current.driver_id == first.id


@pytest.mark.asyncio
async def test_assign_to_same_driver_twice_conflicts(fleet_service, make_vehicle, make_driver):
    driver = await make_driver(license_type="B")
    vehicle = await make_vehicle(type="CAR")
    await fleet_service.assign_vehicle_to_driver(vehicle.id, driver.id)

    with pytest.raises(ResourceConflictError):
        await fleet_service.assign_vehicle_to_driver(vehicle.id, driver.id)


@pytest.mark.asyncio
async def test_assign_to_suspended_driver_fails(fleet_service, make_vehicle, make_driver):
    driver = await make_driver(license_type="C", status="SUSPENDED")
    vehicle = await make_vehicle(type="CAR")

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await fleet_service.assign_vehicle_to_driver(vehicle.id, driver.id)

    assert "suspended driver" in exc_info.value.message


@pytest.mark.asyncio
async def test_assign_with_incompatible_license_fails(fleet_service, make_vehicle, make_driver):
    driver = await make_driver(license_type="B")
    vehicle = await make_vehicle(type="VAN")

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await fleet_service.assign_vehicle_to_driver(vehicle.id, driver.id)

    assert "does not allow operating" in exc_info.value.message
    assert exc_info.value.details == {"license_type": "B", "vehicle_type": "VAN"}
    unchanged = await fleet_service.get_vehicle_by_id(vehicle.id)
    assert unchanged.driver_id is None


@pytest.mark.asyncio
async def test_driver_may_hold_several_vehicles(fleet_service, make_vehicle, make_driver):
    driver = await make_driver(license_type="D")
    car = await make_vehicle(type="CAR")
    bus = await make_vehicle(type="BUS")

    await fleet_service.assign_vehicle_to_driver(car.id, driver.id)
    await fleet_service.assign_vehicle_to_driver(bus.id, driver.id)

    vehicles = await fleet_service.get_vehicles_by_driver_id(driver.id)
    assert {v.type for v in vehicles} == {VehicleType.CAR, VehicleType.BUS}


# Remove Driver From Vehicle

@pytest.mark.asyncio
async def test_remove_driver_from_vehicle(fleet_service, make_vehicle, make_driver):
    driver = await make_driver()
    vehicle = await make_vehicle(driver_id=driver.id)

    updated = await fleet_service.remove_driver_from_vehicle(vehicle.id)

    assert updated.driver_id is None
    assert await fleet_service.get_vehicles_by_driver_id(driver.id) == []


@pytest.mark.asyncio
async def test_remove_driver_from_unknown_vehicle(fleet_service):
    with pytest.raises(ResourceNotFoundError):
        await fleet_service.remove_driver_from_vehicle(5)


# Mileage and status

@pytest.mark.asyncio
async def test_update_mileage(fleet_service, make_vehicle):
    vehicle = await make_vehicle(mileage=100.0)

    updated = await fleet_service.update_vehicle_mileage(vehicle.id, 250.5)

    assert updated.mileage == 250.5


@pytest.mark.asyncio
async def test_negative_mileage_fails_and_leaves_mileage_unchanged(fleet_service, make_vehicle):
    vehicle = await make_vehicle(mileage=100.0)

    with pytest.raises(BusinessRuleViolationError) as exc_info:
        await fleet_service.update_vehicle_mileage(vehicle.id, -5)

    assert exc_info.value.message == "Mileage cannot be negative"
    unchanged = await fleet_service.get_vehicle_by_id(vehicle.id)
    assert unchanged.mileage == 100.0


@pytest.mark.asyncio
async def test_negative_mileage_is_checked_before_lookup(fleet_service):
    with pytest.raises(BusinessRuleViolationError):
        await fleet_service.update_vehicle_mileage(999, -1)


@pytest.mark.asyncio
async def test_update_mileage_unknown_vehicle(fleet_service):
    with pytest.raises(ResourceNotFoundError):
        await fleet_service.update_vehicle_mileage(999, 10)


@pytest.mark.asyncio
async def test_update_status(fleet_service, make_vehicle):
    vehicle = await make_vehicle()

    updated = await fleet_service.update_vehicle_status(vehicle.id, VehicleStatus.IN_USE)

    assert updated.status == VehicleStatus.IN_USE


@pytest.mark.asyncio
async def test_out_of_order_status_keeps_existing_driver(fleet_service, make_vehicle, make_driver):
    driver = await make_driver()
    vehicle = await make_vehicle(driver_id=driver.id)

    updated = await fleet_service.update_vehicle_status(vehicle.id, VehicleStatus.OUT_OF_ORDER)

    assert updated.status == VehicleStatus.OUT_OF_ORDER
    assert updated.driver_id == driver.id


@pytest.mark.asyncio
async def test_update_status_unknown_vehicle(fleet_service):
    with pytest.raises(ResourceNotFoundError):
        await fleet_service.update_vehicle_status(3, VehicleStatus.AVAILABLE)


# Queries

@pytest.mark.asyncio
async def test_get_vehicle_by_license_plate(fleet_service, make_vehicle):
    await make_vehicle(license_plate="KR55555")

    vehicle = await fleet_service.get_vehicle_by_license_plate("KR55555")
    assert vehicle.license_plate == "KR55555"

    with pytest.raises(ResourceNotFoundError) as exc_info:
        await fleet_service.get_vehicle_by_license_plate("NOPE")
    assert exc_info.value.message == "Vehicle with license plate NOPE not found"


@pytest.mark.asyncio
async def test_collection_queries(fleet_service, make_vehicle):
    await make_vehicle(type="CAR", brand="Skoda", model="Octavia")
    await make_vehicle(type="CAR", brand="Skoda", model="Fabia", status="IN_USE")
    await make_vehicle(type="BUS", brand="Solaris", model="Urbino")

    assert len(await fleet_service.get_vehicles_by_type(VehicleType.CAR)) == 2
    assert len(await fleet_service.get_vehicles_by_type(VehicleType.TRUCK)) == 0
    assert len(await fleet_service.get_vehicles_by_status(VehicleStatus.IN_USE)) == 1
    octavias = await fleet_service.get_vehicles_by_brand_and_model("Skoda", "Octavia")
    assert [v.model for v in octavias] == ["Octavia"]
    assert await fleet_service.get_vehicles_by_brand_and_model("Tesla", "Semi") == []


@pytest.mark.asyncio
async def test_get_vehicles_by_unknown_driver_fails(fleet_service):
    with pytest.raises(ResourceNotFoundError):
        await fleet_service.get_vehicles_by_driver_id(42)


@pytest.mark.asyncio
async def test_get_vehicles_by_driver_without_vehicles_is_empty(fleet_service, make_driver):
    driver = await make_driver()

    assert await fleet_service.get_vehicles_by_driver_id(driver.id) == []


@pytest.mark.asyncio
async def test_get_all_vehicles_paginates(fleet_service, make_vehicle):
    for _ in range(5):
        await make_vehicle()

    first = await fleet_service.get_all_vehicles(page=1, page_size=2)
    last = await fleet_service.get_all_vehicles(page=3, page_size=2)
    beyond = await fleet_service.get_all_vehicles(page=4, page_size=2)

    assert first.total == 5
    assert len(first.vehicles) == 2
    assert len(last.vehicles) == 1
    assert beyond.vehicles == []


# Audit trail

@pytest.mark.asyncio
async def test_mutations_are_audited(fleet_service, make_vehicle, make_driver, db_session):
    driver = await make_driver(license_type="C")
    vehicle = await make_vehicle(type="VAN")
    await fleet_service.assign_vehicle_to_driver(vehicle.id, driver.id)
    await fleet_service.remove_driver_from_vehicle(vehicle.id)

    result = await db_session.execute(
        select(AuditLog.action).where(AuditLog.entity_id == vehicle.id, AuditLog.entity_type == "VEHICLE")
        .order_by(AuditLog.id)
    )
    assert list(result.scalars().all()) == [
        AuditAction.VEHICLE_CREATED,
        AuditAction.DRIVER_ASSIGNED,
        AuditAction.DRIVER_UNASSIGNED,
    ]


@pytest.mark.asyncio
async def test_failed_mutation_is_not_audited(fleet_service, make_vehicle, db_session):
    vehicle = await make_vehicle()

    with pytest.raises(BusinessRuleViolationError):
        await fleet_service.remove_driver_from_vehicle(vehicle.id)

    result = await db_session.execute(select(func.count(AuditLog.id)))
    assert result.scalar() == 1


@pytest.mark.asyncio
async def test_vehicle_create_payload_roundtrip_from_dict(fleet_service):
    payload = vehicle_payload(today=TODAY, license_plate="GD00001", type="BUS")
    vehicle = await fleet_service.create_vehicle(VehicleCreate(**payload))

    assert vehicle.type == VehicleType.BUS
