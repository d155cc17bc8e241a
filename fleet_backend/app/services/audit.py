"""
Audit logging service for tracking fleet mutations.

Audit rows are added to the caller's session and committed together with
the change they describe.
"""

from typing import Optional, Dict, Any, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, func
from fleet_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    VEHICLE_CREATED = "VEHICLE_CREATED"
    VEHICLE_UPDATED = "VEHICLE_UPDATED"
    VEHICLE_DELETED = "VEHICLE_DELETED"
    VEHICLE_MILEAGE_UPDATED = "VEHICLE_MILEAGE_UPDATED"
    VEHICLE_STATUS_UPDATED = "VEHICLE_STATUS_UPDATED"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    DRIVER_UNASSIGNED = "DRIVER_UNASSIGNED"

    DRIVER_CREATED = "DRIVER_CREATED"
    DRIVER_UPDATED = "DRIVER_UPDATED"
    DRIVER_DELETED = "DRIVER_DELETED"


class AuditEntity:
    VEHICLE = "VEHICLE"
    DRIVER = "DRIVER"


async def log_event(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: int,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record a fleet event in the audit log.

    The row is flushed but not committed; it becomes durable when the
    surrounding unit of work commits.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        entity_type: AuditEntity constant
        entity_id: ID of the affected vehicle or driver
        metadata: Additional context as JSON

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> Tuple[list[AuditLog], int]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        entity_type: Filter by entity type
        entity_id: Filter by entity ID
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        (AuditLog instances most recent first, total matching count)
    """
    filters = []
    if entity_type:
        filters.append(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        filters.append(AuditLog.entity_id == entity_id)
    if action:
        filters.append(AuditLog.action == action)

    count_query = select(func.count(AuditLog.id))
    query = select(AuditLog)
    for condition in filters:
        count_query = count_query.where(condition)
        query = query.where(condition)

    total_result = await db.execute(count_query)
    total = total_result.scalar()

    query = query.order_by(
        desc(AuditLog.timestamp), desc(AuditLog.id)
    ).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all()), total
