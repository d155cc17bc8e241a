"""
Vehicle Pydantic schemas.

Defines request and response models for vehicle management.
"""

from pydantic import BaseModel, Field
from datetime import date
from typing import Optional, List

from fleet_backend.app.models.enums import VehicleType, VehicleStatus, LicenseType


class VehicleCreate(BaseModel):
    """Schema for registering a new vehicle."""
    license_plate: str = Field(..., min_length=1, max_length=20, description="Unique license plate")
    brand: str = Field(..., min_length=1, max_length=20)
    model: str = Field(..., min_length=1, max_length=20)
    production_year: int = Field(..., ge=1886, description="Year of production")
    type: VehicleType
    registration_date: date
    technical_inspection_date: date = Field(..., description="Must not be in the past")
    mileage: float = Field(0.0, ge=0, description="Mileage in km")
    status: VehicleStatus = VehicleStatus.AVAILABLE
    driver_id: Optional[int] = Field(None, description="Driver to link the new vehicle to")


class VehicleUpdate(BaseModel):
    """
    Schema for partially updating a vehicle.
    
    Only fields present in the payload are applied, except ``driver_id``:
    the vehicle ends up linked to the driver in the patch, and a patch
    without one (absent or ``null``) clears the assignment.
    """
    license_plate: Optional[str] = Field(None, min_length=1, max_length=20)
    brand: Optional[str] = Field(None, min_length=1, max_length=20)
    model: Optional[str] = Field(None, min_length=1, max_length=20)
    production_year: Optional[int] = Field(None, ge=1886)
    type: Optional[VehicleType] = None
    registration_date: Optional[date] = None
    technical_inspection_date: Optional[date] = None
    mileage: Optional[float] = Field(None, ge=0)
    status: Optional[VehicleStatus] = None
    driver_id: Optional[int] = None

    def changes(self) -> dict:
        """Fields explicitly sent with a value, plus the resulting ``driver_id``."""
        data = self.model_dump(exclude_unset=True)
        changes = {field: value for field, value in data.items() if value is not None}
        changes["driver_id"] = self.driver_id
        return changes


class MileageUpdate(BaseModel):
    """Schema for overwriting a vehicle's mileage."""
    mileage: float


class StatusUpdate(BaseModel):
    """Schema for overwriting a vehicle's status."""
    status: VehicleStatus


class VehicleAssignment(BaseModel):
    """Schema for assigning a driver to a vehicle."""
    driver_id: int


class AssignedDriver(BaseModel):
    """Summary of the driver a vehicle is assigned to."""
    id: int
    first_name: str
    last_name: str
    license_type: LicenseType

    class Config:
        from_attributes = True


class VehicleResponse(BaseModel):
    """Schema for vehicle response."""
    id: int
    license_plate: str
    brand: str
    model: str
    production_year: int
    type: VehicleType
    registration_date: date
    technical_inspection_date: date
    mileage: float
    status: VehicleStatus
    driver_id: Optional[int]
    driver: Optional[AssignedDriver] = None
    advisories: List[str] = Field(default_factory=list, description="Non-blocking warnings raised by the operation")
    
    class Config:
        from_attributes = True


class VehicleListResponse(BaseModel):
    """Schema for paginated vehicle list."""
    vehicles: List[VehicleResponse]
    total: int
    page: int
    page_size: int
