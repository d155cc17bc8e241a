"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from fleet_backend.app.api.v1.endpoints import vehicles, drivers, audit_logs

router = APIRouter()

# Vehicle lifecycle and driver assignment
router.include_router(vehicles.router)

# Driver records
router.include_router(drivers.router)

# Audit trail
router.include_router(audit_logs.router)
