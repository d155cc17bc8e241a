"""
Technical Inspection Policy.

An expired inspection blocks vehicle creation and update; an inspection
falling due within the warning window only produces an advisory.
"""

import calendar
import logging
from datetime import date
from typing import Optional

from fleet_backend.app.core.exceptions import BusinessRuleViolationError

logger = logging.getLogger(__name__)


def add_months(day: date, months: int) -> date:
    """Shift a date by whole calendar months, clamping to the last day of the month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def validate_technical_inspection_date(
    license_plate: str,
    inspection_date: date,
    today: date,
    warning_months: int = 1
) -> Optional[str]:
    """
    Validate a vehicle's technical inspection date against today.
    
    Args:
        license_plate: Plate of the vehicle being validated (for messages)
        inspection_date: Date of the technical inspection
        today: Current date
        warning_months: Width of the "expiring soon" window
    
    Returns:
        An advisory message if the inspection expires within the window,
        otherwise None.
    
    Raises:
        BusinessRuleViolationError: If the inspection date is before today.
    """
    advisory = None

    if inspection_date < add_months(today, warning_months):
        logger.warning(
            "Technical inspection for vehicle %s is expiring soon on %s",
            license_plate, inspection_date
        )
        advisory = (
            f"Technical inspection for vehicle {license_plate} is expiring soon "
            f"on {inspection_date.isoformat()}"
        )

    if inspection_date < today:
        logger.error(
            "Technical inspection has expired for vehicle %s on %s",
            license_plate, inspection_date
        )
        raise BusinessRuleViolationError(
            f"Technical inspection has expired for vehicle with license plate "
            f"{license_plate}. Inspection date: {inspection_date.isoformat()}",
            details={
                "license_plate": license_plate,
                "technical_inspection_date": inspection_date.isoformat()
            }
        )

    return advisory
