"""
Audit Log Database Model.

Tracks every successful fleet mutation.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from fleet_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking changes to vehicles and drivers.
    
    Events logged:
    - VEHICLE_CREATED / VEHICLE_UPDATED / VEHICLE_DELETED
    - DRIVER_ASSIGNED / DRIVER_UNASSIGNED
    - VEHICLE_MILEAGE_UPDATED / VEHICLE_STATUS_UPDATED
    - DRIVER_CREATED / DRIVER_UPDATED / DRIVER_DELETED
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # Which record was affected
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=False, index=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
