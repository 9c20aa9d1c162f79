"""
Invitation API endpoints.

WHY: Admins invite principals by email; invitees accept with the token:
1. GET/POST /organizations/{organization_id}/invitations (admin)
2. POST /invitations/{invitation_id}/revoke (admin)
3. POST /invitations/{invitation_id}/resend - New token and expiry (admin)
4. POST /invitations/accept (any authenticated principal holding a token)
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.api.common import reject_mutation
from tenantguard.core.deps import get_current_principal
from tenantguard.db.session import get_db
from tenantguard.models.invitation import InvitationStatus
from tenantguard.schemas.invitation import (
    InvitationAccept,
    InvitationCreate,
    InvitationCreatedResponse,
    InvitationResponse,
)
from tenantguard.schemas.membership import MembershipResponse
from tenantguard.services.invitation_service import InvitationService


organization_router = APIRouter(
    prefix="/organizations/{organization_id}/invitations", tags=["invitations"]
)
router = APIRouter(prefix="/invitations", tags=["invitations"])


@organization_router.get("", response_model=List[InvitationResponse], summary="List invitations")
async def list_invitations(
    organization_id: int,
    invitation_status: InvitationStatus | None = Query(None, alias="status"),
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> List[InvitationResponse]:
    invitations = await InvitationService(db).list_invitations(
        principal, organization_id, status=invitation_status
    )
    return [InvitationResponse.model_validate(i) for i in invitations]


@organization_router.post(
    "",
    response_model=InvitationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite by email (organization admin)",
)
async def create_invitation(
    organization_id: int,
    data: InvitationCreate,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> InvitationCreatedResponse:
    """
    Raises:
        ConflictError (409): If a pending invitation exists for the email
        ResourceNotFoundError (404): If denied or the organization is absent
    """
    invitation = await InvitationService(db).create_invitation(
        principal, organization_id, data.email, data.role
    )
    if invitation is None:
        raise await reject_mutation(db, principal, organization_id, "invitation", "create")
    return InvitationCreatedResponse.model_validate(invitation)


@router.post(
    "/{invitation_id}/revoke",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke a pending invitation (organization admin)",
)
async def revoke_invitation(
    invitation_id: int,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Response:
    revoked = await InvitationService(db).revoke_invitation(principal, invitation_id)
    if not revoked:
        raise await reject_mutation(db, principal, None, "invitation", "update", invitation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{invitation_id}/resend",
    response_model=InvitationCreatedResponse,
    summary="Reissue the token of a pending invitation (organization admin)",
)
async def resend_invitation(
    invitation_id: int,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> InvitationCreatedResponse:
    invitation = await InvitationService(db).resend_invitation(principal, invitation_id)
    if invitation is None:
        raise await reject_mutation(db, principal, None, "invitation", "update", invitation_id)
    return InvitationCreatedResponse.model_validate(invitation)


@router.post(
    "/accept",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Accept an invitation",
)
async def accept_invitation(
    data: InvitationAccept,
    principal: str = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> MembershipResponse:
    """
    Raises:
        ResourceNotFoundError (404): Unknown token
        ConflictError (409): Already accepted, or already a member
        InvariantViolation (422): Revoked or expired
    """
    membership = await InvitationService(db).accept_invitation(data.token, principal)
    return MembershipResponse.model_validate(membership)
