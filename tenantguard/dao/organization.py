"""
Organization Data Access Object.

Plain reads and writes of the organizations table. Visibility rules
(soft delete, membership) are applied by the services through the
Resource Guard; the listing helpers here only express the joins.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.dao.base import BaseDAO
from tenantguard.models.organization import Organization
from tenantguard.models.membership import Membership, MembershipRole


class OrganizationDAO(BaseDAO[Organization]):
    """Data access for organizations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Organization, session)

    async def get_active(self, organization_id: int) -> Optional[Organization]:
        """Organization by ID, None if absent or soft-deleted."""
        result = await self.session.execute(
            select(Organization).where(
                Organization.id == organization_id,
                Organization.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_all(self, include_deleted: bool = True) -> List[Organization]:
        """Every organization, ordered by name. Platform-admin listing."""
        query = select(Organization)
        if not include_deleted:
            query = query.where(Organization.deleted_at.is_(None))
        result = await self.session.execute(query.order_by(Organization.name, Organization.id))
        return list(result.scalars().all())

    async def list_for_member(self, user_id: str) -> List[Tuple[Organization, MembershipRole]]:
        """
        Non-deleted organizations the principal belongs to, with their role.

        One query joining memberships; soft-deleted organizations are
        excluded here because no member may see them.
        """
        result = await self.session.execute(
            select(Organization, Membership.role)
            .join(Membership, Membership.organization_id == Organization.id)
            .where(
                Membership.user_id == user_id,
                Organization.deleted_at.is_(None),
            )
            .order_by(Organization.name, Organization.id)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def mark_deleted(
        self,
        organization: Organization,
        deleted_by: str,
        deleted_at: datetime,
        notes: Optional[str],
    ) -> Organization:
        return await self.update(
            organization,
            deleted_at=deleted_at,
            deleted_by=deleted_by,
            platform_admin_notes=notes,
        )

    async def clear_deleted(self, organization: Organization, notes: Optional[str]) -> Organization:
        return await self.update(
            organization,
            deleted_at=None,
            deleted_by=None,
            platform_admin_notes=notes,
        )
