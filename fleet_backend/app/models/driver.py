"""
Driver database model.

A driver holds a license of a given category. The vehicles a driver operates
are not stored on the driver; they are looked up through ``vehicles.driver_id``.
"""

from sqlalchemy import Column, Integer, String, Date, Enum
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import LicenseType, DriverStatus


class Driver(Base):
    """Driver model."""
    __tablename__ = "drivers"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    first_name = Column(String(30), nullable=False)
    last_name = Column(String(30), nullable=False)
    
    # License
    license_number = Column(String(9), unique=True, nullable=False, index=True)
    license_type = Column(Enum(LicenseType), nullable=False)
    
    # Personal details
    date_of_birth = Column(Date, nullable=False)
    phone_number = Column(String(9), nullable=False)
    email = Column(String(50), nullable=False)
    
    status = Column(Enum(DriverStatus), default=DriverStatus.ACTIVE, nullable=False, index=True)
    
    def __repr__(self):
        return f"<Driver(id={self.id}, license_number='{self.license_number}', license_type='{self.license_type}')>"
