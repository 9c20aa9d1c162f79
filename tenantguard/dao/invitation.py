"""Invitation Data Access Object."""

from typing import List, Optional
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.dao.base import BaseDAO
from tenantguard.models.invitation import Invitation, InvitationStatus


class InvitationDAO(BaseDAO[Invitation]):
    """Data access for invitations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Invitation, session)

    @staticmethod
    def token_query(token: str, for_update: bool = False) -> Select:
        query = select(Invitation).where(Invitation.token == token)
        if for_update:
            # populate_existing so a row already in the session is re-read
            query = query.with_for_update().execution_options(populate_existing=True)
        return query

    async def get_by_token(self, token: str, for_update: bool = False) -> Optional[Invitation]:
        """
        Invitation for a token.

        for_update row-locks the invitation until the transaction ends, so
        concurrent acceptances of one token are serialized and the second
        one sees the status written by the first.
        """
        result = await self.session.execute(self.token_query(token, for_update))
        return result.scalar_one_or_none()

    async def get_pending(self, organization_id: int, email: str) -> Optional[Invitation]:
        """Pending invitation for (organization, email), if any."""
        result = await self.session.execute(
            select(Invitation).where(
                Invitation.organization_id == organization_id,
                Invitation.email == email.lower(),
                Invitation.status == InvitationStatus.PENDING,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_organization(
        self,
        organization_id: int,
        status: Optional[InvitationStatus] = None,
    ) -> List[Invitation]:
        query = select(Invitation).where(Invitation.organization_id == organization_id)
        if status is not None:
            query = query.where(Invitation.status == status)
        result = await self.session.execute(query.order_by(Invitation.created_at.desc(), Invitation.id.desc()))
        return list(result.scalars().all())
