"""
Helpers shared by the admin API routers.

Denied and absent resources render identically (404). A rejected
mutation is still recorded as an access_denied audit event; the event is
committed before the 404 is raised so the request rollback keeps it.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.exceptions import ResourceNotFoundError
from tenantguard.services.audit import AuditService


async def reject_mutation(
    db: AsyncSession,
    principal: str,
    organization_id: Optional[int],
    resource_type: str,
    attempted_action: str,
    resource_id: Optional[Any] = None,
) -> ResourceNotFoundError:
    """
    Record a rejected mutation and build the 404 to raise.

    Usage:
        if membership is None:
            raise await reject_mutation(db, principal, org_id, "membership", "update")
    """
    await AuditService(db).log_access_denied(
        principal,
        organization_id,
        resource_type,
        attempted_action,
        resource_id=resource_id,
    )
    await db.commit()
    return not_found(resource_type, resource_id)


def not_found(resource_type: str, resource_id: Optional[Any] = None) -> ResourceNotFoundError:
    return ResourceNotFoundError(
        f"{resource_type.replace('_', ' ').capitalize()} not found",
        resource_type=resource_type,
        resource_id=resource_id,
    )
