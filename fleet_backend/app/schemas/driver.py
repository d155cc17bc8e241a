"""
Driver Pydantic schemas.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import date
from typing import Optional, List

from fleet_backend.app.models.enums import LicenseType, DriverStatus


class DriverCreate(BaseModel):
    """Schema for registering a new driver."""
    first_name: str = Field(..., min_length=1, max_length=30)
    last_name: str = Field(..., min_length=1, max_length=30)
    license_number: str = Field(..., min_length=1, max_length=9, description="Unique license number")
    license_type: LicenseType
    date_of_birth: date
    phone_number: str = Field(..., min_length=1, max_length=9)
    email: EmailStr = Field(..., max_length=50)
    status: DriverStatus = DriverStatus.ACTIVE


class DriverUpdate(BaseModel):
    """Schema for partially updating a driver. Only sent fields are applied."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=30)
    last_name: Optional[str] = Field(None, min_length=1, max_length=30)
    license_number: Optional[str] = Field(None, min_length=1, max_length=9)
    license_type: Optional[LicenseType] = None
    date_of_birth: Optional[date] = None
    phone_number: Optional[str] = Field(None, min_length=1, max_length=9)
    email: Optional[EmailStr] = Field(None, max_length=50)
    status: Optional[DriverStatus] = None

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        return {field: value for field, value in data.items() if value is not None}


class DriverResponse(BaseModel):
    """Schema for driver response."""
    id: int
    first_name: str
    last_name: str
    license_number: str
    license_type: LicenseType
    date_of_birth: date
    phone_number: str
    email: str
    status: DriverStatus
    
    class Config:
        from_attributes = True


class DriverListResponse(BaseModel):
    """Schema for paginated driver list."""
    drivers: List[DriverResponse]
    total: int
    page: int
    page_size: int
