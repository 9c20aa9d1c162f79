"""Pydantic schemas for membership endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from tenantguard.models.membership import MembershipRole


class MembershipCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=255, description="Principal to add")
    role: MembershipRole = Field(default=MembershipRole.MEMBER, description="admin, member or viewer")


class MembershipRoleUpdate(BaseModel):
    role: MembershipRole = Field(..., description="New role")


class MembershipResponse(BaseModel):
    id: int
    organization_id: int
    user_id: str
    role: MembershipRole
    invited_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
