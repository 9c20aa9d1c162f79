"""
Membership Data Access Object.

WHY: Membership rows are written only by the Membership Lifecycle after
the Resource Guard has allowed the write. Authorization questions
("is this principal a member?") are NOT answered here; they go through
the Permission Evaluator's privileged read path.
"""

from typing import Dict, List, Optional
from sqlalchemy import Select, select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.dao.base import BaseDAO
from tenantguard.models.membership import Membership, MembershipRole


class MembershipDAO(BaseDAO[Membership]):
    """Data access for memberships."""

    def __init__(self, session: AsyncSession):
        super().__init__(Membership, session)

    async def get_membership(self, organization_id: int, user_id: str) -> Optional[Membership]:
        result = await self.session.execute(
            select(Membership).where(
                Membership.organization_id == organization_id,
                Membership.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_organization(self, organization_id: int) -> List[Membership]:
        result = await self.session.execute(
            select(Membership)
            .where(Membership.organization_id == organization_id)
            .order_by(Membership.created_at, Membership.id)
        )
        return list(result.scalars().all())

    async def lock_admins(self, organization_id: int) -> List[Membership]:
        """
        Load and row-lock every admin membership of an organization.

        WHAT: SELECT ... FOR UPDATE on the organization's admin rows.

        WHY: The last-admin check and the removal/demotion that follows
        must be atomic. Two concurrent removals of different admins both
        block on these locks, so the second one re-reads the admin set
        after the first commits and sees the true remaining count.

        Returns:
            Admin memberships, locked until the transaction ends
        """
        result = await self.session.execute(self.admin_lock_query(organization_id))
        return list(result.scalars().all())

    @staticmethod
    def admin_lock_query(organization_id: int) -> Select:
        return (
            select(Membership)
            .where(
                Membership.organization_id == organization_id,
                Membership.role == MembershipRole.ADMIN,
            )
            .order_by(Membership.id)
            .with_for_update()
        )

    async def count_by_role(self, organization_id: int) -> Dict[MembershipRole, int]:
        """Member counts per role, zero-filled."""
        result = await self.session.execute(
            select(Membership.role, func.count(Membership.id))
            .where(Membership.organization_id == organization_id)
            .group_by(Membership.role)
        )
        counts = {role: 0 for role in MembershipRole}
        for role, count in result.all():
            counts[role] = count
        return counts

    async def remove(self, membership: Membership) -> None:
        await self.session.execute(delete(Membership).where(Membership.id == membership.id))
        await self.session.flush()
