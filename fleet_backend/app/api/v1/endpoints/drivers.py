"""
Driver API Endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from fleet_backend.app.core.config import settings
from fleet_backend.app.core.dependencies import get_driver_service, get_fleet_service
from fleet_backend.app.domain.fleet.driver_service import DriverService
from fleet_backend.app.domain.fleet.fleet_service import FleetAssignmentService
from fleet_backend.app.models.enums import DriverStatus
from fleet_backend.app.schemas.driver import (
    DriverCreate,
    DriverListResponse,
    DriverResponse,
    DriverUpdate,
)
from fleet_backend.app.schemas.vehicle import VehicleResponse

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.get("", response_model=DriverListResponse)
async def list_drivers(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size, description="Items per page"),
    driver_status: Optional[DriverStatus] = Query(None, alias="status", description="Filter by status"),
    service: DriverService = Depends(get_driver_service)
):
    return await service.list_drivers(page, page_size, driver_status)


@router.post("", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver_data: DriverCreate,
    service: DriverService = Depends(get_driver_service)
):
    """Register a driver. Returns 409 if the license number is taken."""
    return await service.create_driver(driver_data)


@router.get("/license-number/{license_number}", response_model=DriverResponse)
async def get_driver_by_license_number(
    license_number: str = Path(..., description="License number"),
    service: DriverService = Depends(get_driver_service)
):
    return await service.get_driver_by_license_number(license_number)


@router.get("/{driver_id}", response_model=DriverResponse)
async def get_driver(
    driver_id: int = Path(..., description="Driver ID"),
    service: DriverService = Depends(get_driver_service)
):
    return await service.get_driver(driver_id)


@router.get("/{driver_id}/vehicles", response_model=List[VehicleResponse])
async def get_driver_vehicles(
    driver_id: int = Path(..., description="Driver ID"),
    service: FleetAssignmentService = Depends(get_fleet_service)
):
    """Vehicles currently assigned to the driver."""
    return await service.get_vehicles_by_driver_id(driver_id)


@router.patch("/{driver_id}", response_model=DriverResponse)
async def update_driver(
    driver_id: int = Path(..., description="Driver ID"),
    driver_data: DriverUpdate = ...,
    service: DriverService = Depends(get_driver_service)
):
    return await service.update_driver(driver_id, driver_data)


@router.delete("/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_driver(
    driver_id: int = Path(..., description="Driver ID"),
    service: DriverService = Depends(get_driver_service)
):
    """
    Delete a driver.
    
    Returns 422 while any of the driver's vehicles is IN_USE; other
    vehicles are unassigned.
    """
    await service.delete_driver(driver_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
