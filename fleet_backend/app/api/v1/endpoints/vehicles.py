"""
Vehicle API Endpoints.

Vehicle lookups, lifecycle and driver assignment. All business rules live
in FleetAssignmentService; these handlers only map HTTP to service calls.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, Query, Response, status

from fleet_backend.app.core.config import settings
from fleet_backend.app.core.dependencies import get_fleet_service
from fleet_backend.app.domain.fleet.fleet_service import FleetAssignmentService
from fleet_backend.app.models.enums import VehicleStatus, VehicleType
from fleet_backend.app.schemas.vehicle import (
    MileageUpdate,
    StatusUpdate,
    VehicleAssignment,
    VehicleCreate,
    VehicleListResponse,
    VehicleResponse,
    VehicleUpdate,
)

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


@router.get("", response_model=VehicleListResponse)
async def list_vehicles(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="Items per page"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    """List all vehicles, paginated."""
    return await service.get_all_vehicles(page, page_size)


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle_data: VehicleCreate,
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    """
    Register a new vehicle.
    
    Returns 409 if the license plate is taken, 422 if the technical
    inspection has expired, 404 if ``driver_id`` does not exist.
    An inspection due within a month is reported in ``advisories``.
    """
    return await service.create_vehicle(vehicle_data)


@router.get("/search", response_model=List[VehicleResponse])
async def search_vehicles_by_brand_and_model(
    brand: str = Query(..., min_length=1),
    model: str = Query(..., min_length=1),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    return await service.get_vehicles_by_brand_and_model(brand, model)


@router.get("/license-plate/{license_plate}", response_model=VehicleResponse)
async def get_vehicle_by_license_plate(
    license_plate: str = Path(..., description="License plate"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    return await service.get_vehicle_by_license_plate(license_plate)


@router.get("/status/{vehicle_status}", response_model=List[VehicleResponse])
async def get_vehicles_by_status(
    vehicle_status: VehicleStatus = Path(..., description="Vehicle status"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    return await service.get_vehicles_by_status(vehicle_status)


@router.get("/type/{vehicle_type}", response_model=List[VehicleResponse])
async def get_vehicles_by_type(
    vehicle_type: VehicleType = Path(..., description="Vehicle type"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    return await service.get_vehicles_by_type(vehicle_type)


@router.get("/driver/{driver_id}", response_model=List[VehicleResponse])
async def get_vehicles_by_driver(
    driver_id: int = Path(..., description="Driver ID"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    """Vehicles assigned to a driver. Returns 404 if the driver does not exist."""
    return await service.get_vehicles_by_driver_id(driver_id)


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    return await service.get_vehicle_by_id(vehicle_id)


@router.patch("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    vehicle_data: VehicleUpdate = ...,
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    """
    Partially update a vehicle.
    
    Only fields present in the body are changed. ``"driver_id": null``
    clears the assignment.
    """
    return await service.update_vehicle(vehicle_id, vehicle_data)


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    """
    Delete a vehicle.
    
    Returns 422 while the vehicle is IN_USE by its driver.
    """
    await service.delete_vehicle(vehicle_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{vehicle_id}/assign-driver", response_model=VehicleResponse)
async def assign_driver(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    assignment: VehicleAssignment = ...,
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    """
    Assign a driver to an unassigned vehicle.
    
    Validates:
    - Vehicle is not OUT_OF_ORDER
    - Vehicle has no driver (409 otherwise)
    - Driver is not SUSPENDED
    - Driver's license type allows the vehicle type
    """
    return await service.assign_vehicle_to_driver(vehicle_id, assignment.driver_id)


@router.patch("/{vehicle_id}/unassign-driver", response_model=VehicleResponse)
async def unassign_driver(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    return await service.remove_driver_from_vehicle(vehicle_id)


@router.patch("/{vehicle_id}/mileage", response_model=VehicleResponse)
async def update_mileage(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    mileage_data: MileageUpdate = ...,
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    return await service.update_vehicle_mileage(vehicle_id, mileage_data.mileage)


@router.patch("/{vehicle_id}/status", response_model=VehicleResponse)
async def update_status(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    status_data: StatusUpdate = ...,
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    return await service.update_vehicle_status(vehicle_id, status_data.status)
