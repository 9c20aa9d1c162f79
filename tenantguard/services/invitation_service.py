"""
Invitation service.

WHAT: Admins invite an email address into their organization with a
role; the invitee accepts with the token and becomes a member.

WHY: Acceptance is the path by which a principal inserts a membership
for themselves with a role they did not choose. The token is the only
credential, so it is random, single-use and expires.

HOW: Invitation lifecycle:

    pending --accept--> accepted
    pending --revoke--> revoked
    pending --(expires_at passes)--> expired

Only pending, unexpired invitations can be accepted. A pending
invitation found past its expiry is marked expired when it is next
looked at.
"""

import logging
import secrets
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.config import settings
from tenantguard.core.exceptions import (
    ConflictError,
    InvariantViolation,
    ResourceNotFoundError,
    ValidationError,
)
from tenantguard.dao.invitation import InvitationDAO
from tenantguard.dao.organization import OrganizationDAO
from tenantguard.models.audit_event import AuditAction
from tenantguard.models.base import utcnow
from tenantguard.models.invitation import Invitation, InvitationStatus
from tenantguard.models.membership import Membership, MembershipRole
from tenantguard.services.guard import Action, ResourceGuard, ResourceType
from tenantguard.services.membership_service import MembershipService


logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def normalize_email(email: Optional[str]) -> str:
    """
    Lower-case and trim an email address.

    Raises:
        ValidationError: If the address is obviously malformed
    """
    cleaned = (email or "").strip().lower()
    local, _, domain = cleaned.partition("@")
    if not local or not domain or " " in cleaned:
        raise ValidationError("Invalid email address", field="email")
    return cleaned


class InvitationService:
    """Business operations on invitations."""

    def __init__(self, session: AsyncSession, guard: Optional[ResourceGuard] = None):
        self.session = session
        self.guard = guard or ResourceGuard(session)
        self.invitations = InvitationDAO(session)
        self.organizations = OrganizationDAO(session)
        self.membership_service = MembershipService(session, guard=self.guard)
        self.audit = self.membership_service.audit

    async def create_invitation(
        self,
        acting_principal: str,
        organization_id: int,
        email: str,
        role: MembershipRole = MembershipRole.MEMBER,
    ) -> Optional[Invitation]:
        """
        Invite an email address into an organization.

        Returns:
            The pending invitation, None when the acting principal is not
            an admin of the organization or the organization does not exist

        Raises:
            ValidationError: If the email is malformed
            ConflictError: If a pending invitation already exists
        """
        decision = await self.guard.authorize(
            acting_principal, organization_id, Action.CREATE, ResourceType.INVITATION
        )
        if not decision:
            return None
        if await self.organizations.get_by_id(organization_id) is None:
            return None

        email = normalize_email(email)
        existing = await self.invitations.get_pending(organization_id, email)
        if existing is not None:
            if existing.is_expired:
                await self.invitations.update(existing, status=InvitationStatus.EXPIRED)
            else:
                raise ConflictError(
                    "A pending invitation already exists for this email",
                    organization_id=organization_id,
                )

        invitation = await self.invitations.create(
            organization_id=organization_id,
            email=email,
            role=MembershipRole(role),
            invited_by=acting_principal,
            token=secrets.token_urlsafe(TOKEN_BYTES),
            status=InvitationStatus.PENDING,
            expires_at=utcnow() + timedelta(days=settings.INVITATION_EXPIRY_DAYS),
        )
        await self.audit.log_event(
            AuditAction.INVITE_USER,
            organization_id,
            {"email": email, "role": invitation.role.value},
            user_id=acting_principal,
            resource_type="invitation",
            resource_id=invitation.id,
        )
        return invitation

    async def get_valid_invitation(self, token: str) -> Optional[Invitation]:
        """
        Pending, unexpired invitation for a token.

        Marks a pending invitation found past its expiry as expired.
        """
        invitation = await self.invitations.get_by_token(token)
        if invitation is None or invitation.status != InvitationStatus.PENDING:
            return None
        if invitation.is_expired:
            await self.invitations.update(invitation, status=InvitationStatus.EXPIRED)
            return None
        return invitation

    async def accept_invitation(self, token: str, principal: str) -> Membership:
        """
        Join the invitation's organization with the invitation's role.

        Raises:
            ResourceNotFoundError: Unknown token or organization no longer available
            ConflictError: Invitation already accepted, or already a member
            InvariantViolation: Invitation revoked or expired
        """
        invitation = await self.invitations.get_by_token(token, for_update=True)
        if invitation is None:
            raise ResourceNotFoundError("Invitation not found", resource_type="invitation")

        if invitation.status == InvitationStatus.ACCEPTED:
            raise ConflictError("Invitation has already been accepted")
        if invitation.status == InvitationStatus.REVOKED:
            raise InvariantViolation("Invitation has been revoked")
        if invitation.status == InvitationStatus.EXPIRED or invitation.is_expired:
            raise InvariantViolation("Invitation has expired")

        organization = await self.organizations.get_active(invitation.organization_id)
        if organization is None:
            raise ResourceNotFoundError("Invitation not found", resource_type="invitation")

        membership = await self.membership_service.insert_membership(
            invitation.organization_id,
            principal,
            invitation.role,
            invited_by=invitation.invited_by,
        )
        await self.invitations.update(
            invitation,
            status=InvitationStatus.ACCEPTED,
            accepted_at=utcnow(),
            accepted_by=principal,
        )
        await self.audit.log_event(
            AuditAction.ACCEPT_INVITATION,
            invitation.organization_id,
            {"invitation_id": invitation.id, "role": invitation.role.value},
            user_id=principal,
            resource_type="membership",
            resource_id=membership.id,
        )

        logger.info(
            "%s joined organization %s via invitation %s",
            principal,
            invitation.organization_id,
            invitation.id,
        )
        return membership

    async def revoke_invitation(self, acting_principal: str, invitation_id: int) -> bool:
        """
        Revoke a pending invitation.

        Returns:
            True if revoked; False when denied, absent or no longer pending
        """
        invitation = await self.invitations.get_by_id(invitation_id)
        if invitation is None:
            return False

        decision = await self.guard.authorize(
            acting_principal, invitation.organization_id, Action.UPDATE, ResourceType.INVITATION
        )
        if not decision or invitation.status != InvitationStatus.PENDING:
            return False

        await self.invitations.update(invitation, status=InvitationStatus.REVOKED)
        await self.audit.log_event(
            AuditAction.REVOKE_INVITATION,
            invitation.organization_id,
            {"email": invitation.email},
            user_id=acting_principal,
            resource_type="invitation",
            resource_id=invitation.id,
        )
        return True

    async def resend_invitation(self, acting_principal: str, invitation_id: int) -> Optional[Invitation]:
        """
        Issue a fresh token and expiry for a pending invitation.

        The previous token stops working. A pending invitation whose
        expiry has already passed is renewed too.

        Returns:
            The renewed invitation; None when denied, absent or no longer
            pending
        """
        invitation = await self.invitations.get_by_id(invitation_id)
        if invitation is None:
            return None

        decision = await self.guard.authorize(
            acting_principal, invitation.organization_id, Action.UPDATE, ResourceType.INVITATION
        )
        if not decision or invitation.status != InvitationStatus.PENDING:
            return None

        invitation = await self.invitations.update(
            invitation,
            token=secrets.token_urlsafe(TOKEN_BYTES),
            expires_at=utcnow() + timedelta(days=settings.INVITATION_EXPIRY_DAYS),
        )
        await self.audit.log_event(
            AuditAction.RESEND_INVITATION,
            invitation.organization_id,
            {"email": invitation.email},
            user_id=acting_principal,
            resource_type="invitation",
            resource_id=invitation.id,
        )
        return invitation

    async def list_invitations(
        self,
        principal: str,
        organization_id: int,
        status: Optional[InvitationStatus] = None,
    ) -> List[Invitation]:
        """Invitations of an organization. Admins only; empty when denied."""
        decision = await self.guard.authorize(
            principal, organization_id, Action.READ, ResourceType.INVITATION
        )
        if not decision:
            return []
        return await self.invitations.list_for_organization(organization_id, status=status)
