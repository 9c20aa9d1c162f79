"""
Pydantic schemas for organization endpoints.

WHY: Schemas define request/response contracts for organization management,
providing validation, documentation, and type safety.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class OrganizationCreate(BaseModel):
    """Self-service organization creation. The caller becomes its first admin."""

    name: str = Field(..., min_length=1, max_length=255, description="Organization name")

    model_config = {"json_schema_extra": {"example": {"name": "Northwind Distributors"}}}


class OrganizationProvision(BaseModel):
    """Platform admin provisioning on behalf of another principal."""

    name: str = Field(..., min_length=1, max_length=255, description="Organization name")
    admin_user_id: str = Field(
        ..., min_length=1, max_length=255, description="Principal who becomes the first admin"
    )
    notes: str | None = Field(default=None, description="Initial platform admin notes")


class OrganizationUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="New organization name")


class OrganizationNotesUpdate(BaseModel):
    notes: str | None = Field(default=None, description="Platform admin notes (replaces existing)")


class SoftDeleteRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000, description="Why the organization is hidden")


class OrganizationResponse(BaseModel):
    """Organization as seen by its members."""

    id: int = Field(..., description="Organization ID")
    name: str = Field(..., description="Organization name")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    model_config = {"from_attributes": True}


class PlatformOrganizationResponse(OrganizationResponse):
    """Organization including soft-delete and provenance fields (platform admin view)."""

    deleted_at: datetime | None = None
    deleted_by: str | None = None
    created_by_platform_admin: bool = False
    created_by_user_id: str | None = None
    platform_admin_notes: str | None = None


class OrganizationListItem(PlatformOrganizationResponse):
    """
    One organization with the caller's role in it.

    Soft-delete, provenance and notes fields are only filled in for the
    platform admin.
    """

    role: str = Field(default="", description="admin, member, viewer or platform_admin")


class LifecycleResponse(BaseModel):
    """Outcome of a soft-delete or restore call."""

    organization_id: int
    changed: bool = Field(..., description="False when the organization was already in the target state")
