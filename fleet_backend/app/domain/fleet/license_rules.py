"""
License Compatibility Rules.

Decides which vehicle types a driving license category may operate.
"""

import logging
from typing import Dict, FrozenSet, Optional

from fleet_backend.app.core.exceptions import BusinessRuleViolationError
from fleet_backend.app.models.enums import LicenseType, VehicleType

logger = logging.getLogger(__name__)


LICENSE_COMPATIBILITY: Dict[LicenseType, FrozenSet[VehicleType]] = {
    LicenseType.B: frozenset({VehicleType.CAR}),
    LicenseType.C: frozenset({VehicleType.CAR, VehicleType.VAN, VehicleType.TRUCK}),
    LicenseType.D: frozenset({VehicleType.CAR, VehicleType.BUS}),
    LicenseType.CE: frozenset({VehicleType.CAR, VehicleType.VAN, VehicleType.TRUCK}),
    LicenseType.DE: frozenset({VehicleType.CAR, VehicleType.BUS}),
}


def can_driver_operate_vehicle(
    license_type: Optional[LicenseType],
    vehicle_type: VehicleType
) -> bool:
    """
    Check whether a license category allows operating a vehicle type.
    
    Raises:
        BusinessRuleViolationError: If the license type is missing or unknown.
    """
    logger.debug("Checking if license type %s can operate vehicle type %s", license_type, vehicle_type)

    allowed = LICENSE_COMPATIBILITY.get(license_type) if license_type is not None else None
    if allowed is None:
        raise BusinessRuleViolationError(
            "Driver has an unknown or invalid license type",
            details={"license_type": license_type}
        )
    return vehicle_type in allowed
