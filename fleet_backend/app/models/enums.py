"""
Fleet enumerations.

Closed sets for vehicle type, vehicle status, driver license type and
driver status.
"""

import enum


class VehicleType(str, enum.Enum):
    """Vehicle type enumeration."""
    CAR = "CAR"
    VAN = "VAN"
    TRUCK = "TRUCK"
    BUS = "BUS"


class VehicleStatus(str, enum.Enum):
    """Vehicle status enumeration."""
    AVAILABLE = "AVAILABLE"  # Ready to be used
    IN_USE = "IN_USE"  # Being operated by its driver
    OUT_OF_ORDER = "OUT_OF_ORDER"  # Cannot be assigned


class LicenseType(str, enum.Enum):
    """
    Driving license categories.
    
    Categories:
        B: Passenger cars
        C: Heavy goods vehicles
        D: Buses
        CE: Heavy goods vehicles with trailer
        DE: Buses with trailer
    """
    B = "B"
    C = "C"
    D = "D"
    CE = "CE"
    DE = "DE"


class DriverStatus(str, enum.Enum):
    """Driver status enumeration."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ON_LEAVE = "ON_LEAVE"
    SUSPENDED = "SUSPENDED"  # May not be assigned a vehicle
