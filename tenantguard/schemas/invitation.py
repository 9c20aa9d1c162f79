"""
Pydantic schemas for invitation endpoints.

The token is returned once, when the invitation is created, so the
inviting admin can deliver it. Listings never include it.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from tenantguard.models.invitation import InvitationStatus
from tenantguard.models.membership import MembershipRole


class InvitationCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, description="Invitee email address")
    role: MembershipRole = Field(default=MembershipRole.MEMBER, description="Role granted on acceptance")


class InvitationAccept(BaseModel):
    token: str = Field(..., min_length=1, description="Invitation token")


class InvitationResponse(BaseModel):
    id: int
    organization_id: int
    email: str
    role: MembershipRole
    status: InvitationStatus
    invited_by: str
    expires_at: datetime
    accepted_at: datetime | None = None
    accepted_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationCreatedResponse(InvitationResponse):
    token: str
