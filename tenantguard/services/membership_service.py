"""
Membership lifecycle service.

WHAT: Admin-initiated membership creation, role changes, removal and
member listing.

WHY: Membership rows are the ground truth for every authorization
decision, so writes to them carry the strictest rules:
- Only an admin of the organization (or the platform admin) may write.
- Nobody changes their own role, admins included.
- The last admin of an organization can be neither removed nor demoted.
  The built-in MEMBERSHIP_* hooks enforce this under a row lock.

HOW: Every operation asks the Resource Guard first. A denial returns
None / False / [] rather than raising; invariant breaches raise
InvariantViolation and duplicates raise ConflictError.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.exceptions import ConflictError, InvariantViolation
from tenantguard.dao.membership import MembershipDAO
from tenantguard.dao.organization import OrganizationDAO
from tenantguard.models.audit_event import AuditAction
from tenantguard.models.membership import Membership, MembershipRole
from tenantguard.services.audit import AuditService
from tenantguard.services.guard import Action, ResourceGuard, ResourceType
from tenantguard.services.hooks import DomainEvent, HookRegistry, hook_registry


logger = logging.getLogger(__name__)


class MembershipService:
    """Business operations on memberships."""

    def __init__(
        self,
        session: AsyncSession,
        guard: Optional[ResourceGuard] = None,
        hooks: Optional[HookRegistry] = None,
    ):
        self.session = session
        self.guard = guard or ResourceGuard(session)
        self.hooks = hooks or hook_registry
        self.memberships = MembershipDAO(session)
        self.organizations = OrganizationDAO(session)
        self.audit = AuditService(session, guard=self.guard)

    async def create_membership(
        self,
        organization_id: int,
        user_id: str,
        role: MembershipRole,
        acting_principal: str,
    ) -> Optional[Membership]:
        """
        Add another principal to an organization with an explicit role.

        Returns:
            The new membership, None when the acting principal may not
            manage members or the organization does not exist

        Raises:
            ConflictError: If the principal is already a member
        """
        decision = await self.guard.authorize(
            acting_principal, organization_id, Action.CREATE, ResourceType.MEMBERSHIP
        )
        if not decision:
            return None
        # The platform admin is allowed before the organization is looked up
        if await self.organizations.get_by_id(organization_id) is None:
            return None

        membership = await self.insert_membership(
            organization_id, user_id, MembershipRole(role), invited_by=acting_principal
        )
        await self.audit.log_event(
            AuditAction.ADD_MEMBER,
            organization_id,
            {"target_user_id": user_id, "role": membership.role.value},
            user_id=acting_principal,
            resource_type="membership",
            resource_id=membership.id,
        )
        return membership

    async def insert_membership(
        self,
        organization_id: int,
        user_id: str,
        role: MembershipRole,
        invited_by: Optional[str] = None,
    ) -> Membership:
        """
        Insert a membership row after authorization has been decided.

        Shared by admin-initiated creation and invitation acceptance.

        Raises:
            ConflictError: If (organization, user) already exists
            IntegrityError: Any other constraint failure, e.g. an unknown
                organization
        """
        if await self.memberships.get_membership(organization_id, user_id) is not None:
            raise ConflictError(
                "User is already a member of this organization",
                organization_id=organization_id,
                user_id=user_id,
            )
        try:
            async with self.session.begin_nested():
                return await self.memberships.create(
                    organization_id=organization_id,
                    user_id=user_id,
                    role=role,
                    invited_by=invited_by,
                )
        except IntegrityError:
            # Inserted concurrently by another transaction
            if await self.memberships.get_membership(organization_id, user_id) is None:
                raise
            raise ConflictError(
                "User is already a member of this organization",
                organization_id=organization_id,
                user_id=user_id,
            )

    async def update_membership_role(
        self,
        organization_id: int,
        user_id: str,
        new_role: MembershipRole,
        acting_principal: str,
    ) -> Optional[Membership]:
        """
        Change another member's role.

        Returns:
            The updated membership, None when denied or the membership
            does not exist

        Raises:
            InvariantViolation: If an admin targets their own membership,
                or the change would demote the last admin
        """
        decision = await self.guard.authorize(
            acting_principal, organization_id, Action.UPDATE, ResourceType.MEMBERSHIP
        )
        if not decision:
            return None

        if acting_principal == user_id:
            raise InvariantViolation(
                "You cannot change your own role",
                organization_id=organization_id,
            )

        membership = await self.memberships.get_membership(organization_id, user_id)
        if membership is None:
            return None

        new_role = MembershipRole(new_role)
        old_role = membership.role
        if old_role == new_role:
            return membership

        await self.hooks.run(
            DomainEvent.MEMBERSHIP_ROLE_CHANGING,
            self.session,
            membership=membership,
            new_role=new_role,
        )
        membership = await self.memberships.update(membership, role=new_role)
        await self.audit.log_event(
            AuditAction.UPDATE_ROLE,
            organization_id,
            {
                "target_user_id": user_id,
                "old_role": old_role.value,
                "new_role": new_role.value,
            },
            user_id=acting_principal,
            resource_type="membership",
            resource_id=membership.id,
        )

        logger.info(
            "Role of %s in organization %s changed %s -> %s by %s",
            user_id,
            organization_id,
            old_role.value,
            new_role.value,
            acting_principal,
        )
        return membership

    async def remove_membership(
        self,
        organization_id: int,
        user_id: str,
        acting_principal: str,
    ) -> bool:
        """
        Remove a principal from an organization.

        Admins may remove themselves as long as another admin remains.

        Returns:
            True if removed, False when denied or the membership does not exist

        Raises:
            InvariantViolation: If the membership is the last admin
        """
        decision = await self.guard.authorize(
            acting_principal, organization_id, Action.DELETE, ResourceType.MEMBERSHIP
        )
        if not decision:
            return False

        membership = await self.memberships.get_membership(organization_id, user_id)
        if membership is None:
            return False

        await self.hooks.run(DomainEvent.MEMBERSHIP_REMOVING, self.session, membership=membership)
        membership_id, role = membership.id, membership.role
        await self.memberships.remove(membership)
        await self.audit.log_event(
            AuditAction.REMOVE_MEMBER,
            organization_id,
            {"target_user_id": user_id, "role": role.value},
            user_id=acting_principal,
            resource_type="membership",
            resource_id=membership_id,
        )

        logger.info(
            "Removed %s from organization %s by %s", user_id, organization_id, acting_principal
        )
        return True

    async def list_members(self, principal: str, organization_id: int) -> List[Membership]:
        """
        Memberships of an organization.

        Visible to members of the same organization and the platform
        admin; empty for everyone else.
        """
        decision = await self.guard.authorize(
            principal, organization_id, Action.READ, ResourceType.MEMBERSHIP
        )
        if not decision:
            return []
        return await self.memberships.list_for_organization(organization_id)
