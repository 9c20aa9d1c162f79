"""
Membership management API endpoints.

WHY: Organization admins manage who belongs to their organization:
1. GET / - Members (visible to members of the same organization)
2. POST / - Add a principal with a role (admin)
3. PATCH /{user_id} - Change another member's role (admin, never own role)
4. DELETE /{user_id} - Remove a member (admin; never the last admin)
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.common import reject_mutation
from tenantguard.core.deps import get_current_principal
from tenantguard.db.session import get_db
from tenantguard.schemas.membership import (
    MembershipCreate,
    MembershipResponse,
    MembershipRoleUpdate,
)
from tenantguard.services.membership_service import MembershipService


router = APIRouter(prefix="/organizations/{organization_id}/members", tags=["memberships"])


@router.get("", response_model=List[MembershipResponse], summary="List members")
async def list_members(
    organization_id: int,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> List[MembershipResponse]:
    """Empty when the caller may not see the organization's members."""
    memberships = await MembershipService(db).list_members(principal, organization_id)
    return [MembershipResponse.model_validate(m) for m in memberships]


@router.post(
    "",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add member (organization admin)",
)
async def add_member(
    organization_id: int,
    data: MembershipCreate,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> MembershipResponse:
    """
    Raises:
        ConflictError (409): If the principal is already a member
        ResourceNotFoundError (404): If denied or the organization is absent
    """
    membership = await MembershipService(db).create_membership(
        organization_id, data.user_id, data.role, principal
    )
    if membership is None:
        raise await reject_mutation(db, principal, organization_id, "membership", "create")
    return MembershipResponse.model_validate(membership)


@router.patch(
    "/{user_id}",
    response_model=MembershipResponse,
    summary="Change member role (organization admin)",
)
async def update_member_role(
    organization_id: int,
    user_id: str,
    data: MembershipRoleUpdate,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> MembershipResponse:
    """
    Raises:
        InvariantViolation (422): Own role, or demoting the last admin
        ResourceNotFoundError (404): If denied or the membership is absent
    """
    membership = await MembershipService(db).update_membership_role(
        organization_id, user_id, data.role, principal
    )
    if membership is None:
        raise await reject_mutation(db, principal, organization_id, "membership", "update", user_id)
    return MembershipResponse.model_validate(membership)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove member (organization admin)",
)
async def remove_member(
    organization_id: int,
    user_id: str,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    Raises:
        InvariantViolation (422): If the member is the last admin
        ResourceNotFoundError (404): If denied or the membership is absent
    """
    removed = await MembershipService(db).remove_membership(organization_id, user_id, principal)
    if not removed:
        raise await reject_mutation(db, principal, organization_id, "membership", "delete", user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
