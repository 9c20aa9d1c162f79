"""
Organization management API endpoints.

WHY: Administrative surface over the organization lifecycle:
1. GET / - Organizations visible to the caller, with the caller's role
2. POST / - Create an organization (caller becomes admin)
3. POST /provision - Create on behalf of another principal (platform admin)
4. GET/PATCH /{organization_id} - Read / rename (guarded)
5. POST /{organization_id}/soft-delete and /restore (platform admin)
6. PUT /{organization_id}/notes (platform admin)
7. GET /{organization_id}/security-metrics (organization admin)
8. GET /{organization_id}/audit-events - Audit log listing (organization admin)
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.common import not_found, reject_mutation
from tenantguard.core.deps import get_current_principal
from tenantguard.db.session import get_db
from tenantguard.schemas.organization import (
    LifecycleResponse,
    OrganizationCreate,
    OrganizationListItem,
    OrganizationNotesUpdate,
    OrganizationProvision,
    OrganizationResponse,
    OrganizationUpdate,
    PlatformOrganizationResponse,
    SoftDeleteRequest,
)
from tenantguard.schemas.security import AuditEventResponse, SecurityMetricResponse
from tenantguard.services.audit import AuditService
from tenantguard.services.organization_service import PLATFORM_ADMIN_ROLE, OrganizationService


router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get(
    "",
    response_model=List[OrganizationListItem],
    summary="List organizations",
    description="Organizations visible to the caller with the caller's role in each",
)
async def list_organizations(
    include_deleted: bool = Query(True, description="Platform admin only: include soft-deleted"),
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> List[OrganizationListItem]:
    rows = await OrganizationService(db).list_organizations(principal, include_deleted=include_deleted)

    items = []
    for organization, role in rows:
        item = OrganizationListItem.model_validate(organization).model_copy(update={"role": role})
        if role != PLATFORM_ADMIN_ROLE:
            # Provenance and notes are platform admin information
            item = item.model_copy(
                update={
                    "deleted_at": None,
                    "deleted_by": None,
                    "created_by_platform_admin": False,
                    "created_by_user_id": None,
                    "platform_admin_notes": None,
                }
            )
        items.append(item)
    return items


@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create organization",
)
async def create_organization(
    data: OrganizationCreate,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> OrganizationResponse:
    """
    Create an organization with the caller as its first admin.

    Raises:
        InvariantViolation (422): If the name is blank
    """
    organization = await OrganizationService(db).create_organization(principal, data.name)
    return OrganizationResponse.model_validate(organization)


@router.post(
    "/provision",
    response_model=PlatformOrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Provision organization (platform admin)",
)
async def provision_organization(
    data: OrganizationProvision,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> PlatformOrganizationResponse:
    """
    Create an organization on behalf of another principal.

    Raises:
        PermissionDenied (403): If the caller is not the platform admin
    """
    organization = await OrganizationService(db).create_organization_with_admin(
        principal, data.name, data.admin_user_id, notes=data.notes
    )
    return PlatformOrganizationResponse.model_validate(organization)


@router.get(
    "/{organization_id}",
    response_model=OrganizationResponse,
    summary="Get organization",
)
async def get_organization(
    organization_id: int,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> OrganizationResponse:
    """
    Raises:
        ResourceNotFoundError (404): If absent or not visible to the caller
    """
    organization = await OrganizationService(db).get_organization(principal, organization_id)
    if organization is None:
        raise not_found("organization", organization_id)
    return OrganizationResponse.model_validate(organization)


@router.patch(
    "/{organization_id}",
    response_model=OrganizationResponse,
    summary="Rename organization (organization admin)",
)
async def update_organization(
    organization_id: int,
    data: OrganizationUpdate,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> OrganizationResponse:
    organization = await OrganizationService(db).rename_organization(
        principal, organization_id, data.name
    )
    if organization is None:
        raise await reject_mutation(db, principal, organization_id, "organization", "update", organization_id)
    return OrganizationResponse.model_validate(organization)


@router.post(
    "/{organization_id}/soft-delete",
    response_model=LifecycleResponse,
    summary="Soft-delete organization (platform admin)",
)
async def soft_delete_organization(
    organization_id: int,
    data: SoftDeleteRequest,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> LifecycleResponse:
    """
    Raises:
        PermissionDenied (403): If the caller is not the platform admin
        ResourceNotFoundError (404): If the organization does not exist
    """
    changed = await OrganizationService(db).soft_delete_organization(
        organization_id, data.reason, principal
    )
    return LifecycleResponse(organization_id=organization_id, changed=changed)


@router.post(
    "/{organization_id}/restore",
    response_model=LifecycleResponse,
    summary="Restore soft-deleted organization (platform admin)",
)
async def restore_organization(
    organization_id: int,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> LifecycleResponse:
    changed = await OrganizationService(db).restore_organization(organization_id, principal)
    return LifecycleResponse(organization_id=organization_id, changed=changed)


@router.put(
    "/{organization_id}/notes",
    response_model=PlatformOrganizationResponse,
    summary="Replace platform admin notes (platform admin)",
)
async def update_organization_notes(
    organization_id: int,
    data: OrganizationNotesUpdate,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> PlatformOrganizationResponse:
    organization = await OrganizationService(db).update_organization_notes(
        principal, organization_id, data.notes
    )
    return PlatformOrganizationResponse.model_validate(organization)


@router.get(
    "/{organization_id}/security-metrics",
    response_model=List[SecurityMetricResponse],
    summary="Organization security metrics (organization admin)",
)
async def get_security_metrics(
    organization_id: int,
    window_days: int | None = Query(None, ge=1, le=365, description="Recent-events window"),
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> List[SecurityMetricResponse]:
    """
    Raises:
        PermissionDenied (403): If the caller is not an admin of the organization
    """
    metrics = await AuditService(db).get_organization_security_metrics(
        principal, organization_id, window_days=window_days
    )
    return [SecurityMetricResponse.model_validate(metric) for metric in metrics]


@router.get(
    "/{organization_id}/audit-events",
    response_model=List[AuditEventResponse],
    summary="Audit events of an organization (organization admin)",
)
async def list_audit_events(
    organization_id: int,
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    action: str | None = Query(None, description="Filter by action"),
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> List[AuditEventResponse]:
    """Newest first. Empty for callers who are not admins of the organization."""
    events = await AuditService(db).list_events(
        principal, organization_id, skip=skip, limit=limit, action=action
    )
    return [AuditEventResponse.model_validate(event) for event in events]
