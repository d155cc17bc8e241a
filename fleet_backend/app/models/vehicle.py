"""
Vehicle database model.

``driver_id`` is the single source of truth for which driver a vehicle is
assigned to.
"""

from sqlalchemy import Column, Integer, String, Float, Date, Enum, ForeignKey, Index
from fleet_backend.app.db.session import Base
from fleet_backend.app.models.enums import VehicleType, VehicleStatus


class Vehicle(Base):
    """
    Vehicle model.
    
    A vehicle is assigned to at most one driver at a time through
    ``driver_id``; a driver may have many vehicles.
    """
    __tablename__ = "vehicles"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Identification
    license_plate = Column(String(20), unique=True, nullable=False, index=True)
    brand = Column(String(20), nullable=False)
    model = Column(String(20), nullable=False)
    production_year = Column(Integer, nullable=False)
    type = Column(Enum(VehicleType), nullable=False, index=True)
    
    # Registration and inspection
    registration_date = Column(Date, nullable=False)
    technical_inspection_date = Column(Date, nullable=False)
    
    mileage = Column(Float, nullable=False, default=0.0)
    status = Column(Enum(VehicleStatus), default=VehicleStatus.AVAILABLE, nullable=False, index=True)
    
    # Assignment
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=True, index=True)
    
    __table_args__ = (
        Index('ix_vehicles_brand_model', 'brand', 'model'),
    )
    
    def __repr__(self):
        return f"<Vehicle(id={self.id}, plate='{self.license_plate}', type='{self.type}', driver_id={self.driver_id})>"
