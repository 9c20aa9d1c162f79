"""
Organization lifecycle service.

WHAT: Organization creation (self-enrollment and platform-admin
provisioning), listing, rename, platform admin notes and the soft-delete
lifecycle.

WHY: An organization and its first admin membership must come into
existence together, and only the platform admin may hide or restore a
tenant. Ordinary reads go through the Resource Guard and come back
empty when denied; the platform-admin tooling raises PermissionDenied.

HOW: Soft-delete state machine:

    Active --soft_delete--> Deleted --restore--> Active

soft_delete on a deleted organization and restore on an active one are
no-ops that return False. Each transition appends a line to
platform_admin_notes and writes an audit event.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.exceptions import InvariantViolation, PermissionDenied, ResourceNotFoundError
from tenantguard.dao.membership import MembershipDAO
from tenantguard.dao.organization import OrganizationDAO
from tenantguard.models.audit_event import AuditAction
from tenantguard.models.base import utcnow
from tenantguard.models.membership import MembershipRole
from tenantguard.models.organization import Organization
from tenantguard.services.audit import AuditService
from tenantguard.services.guard import Action, ResourceGuard, ResourceType
from tenantguard.services.hooks import DomainEvent, HookRegistry, hook_registry


logger = logging.getLogger(__name__)

PLATFORM_ADMIN_ROLE = "platform_admin"
MAX_NAME_LENGTH = 255


def clean_organization_name(name: Optional[str]) -> str:
    """
    Trim and validate an organization name.

    Raises:
        InvariantViolation: If the name is empty or too long
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvariantViolation("Organization name must not be empty")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvariantViolation(
            f"Organization name must be at most {MAX_NAME_LENGTH} characters"
        )
    return cleaned


def _append_note(existing: Optional[str], line: str) -> str:
    if existing:
        return f"{existing}\n{line}"
    return line


class OrganizationService:
    """Business operations on organizations."""

    def __init__(
        self,
        session: AsyncSession,
        guard: Optional[ResourceGuard] = None,
        hooks: Optional[HookRegistry] = None,
    ):
        self.session = session
        self.guard = guard or ResourceGuard(session)
        self.evaluator = self.guard.evaluator
        self.hooks = hooks or hook_registry
        self.organizations = OrganizationDAO(session)
        self.memberships = MembershipDAO(session)
        self.audit = AuditService(session, guard=self.guard)

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_organization(self, principal: str, name: str) -> Organization:
        """
        Create an organization with `principal` as its first admin.

        The organization, the admin membership, ORGANIZATION_CREATED hooks
        and the audit event all land in the caller's transaction.

        Raises:
            InvariantViolation: If the name is empty
        """
        cleaned = clean_organization_name(name)

        organization = await self.organizations.create(
            name=cleaned,
            created_by_user_id=principal,
            created_by_platform_admin=False,
        )
        await self.memberships.create(
            organization_id=organization.id,
            user_id=principal,
            role=MembershipRole.ADMIN,
        )
        await self.hooks.run(
            DomainEvent.ORGANIZATION_CREATED,
            self.session,
            organization=organization,
            admin_user_id=principal,
        )
        await self.audit.log_event(
            AuditAction.CREATE_ORGANIZATION,
            organization.id,
            {"organization_name": cleaned},
            user_id=principal,
        )

        logger.info("Organization %s created by %s", organization.id, principal)
        return organization

    async def create_organization_with_admin(
        self,
        acting_principal: str,
        name: str,
        admin_user_id: str,
        notes: Optional[str] = None,
    ) -> Organization:
        """
        Provision an organization on behalf of another principal.

        Args:
            acting_principal: Must be the platform admin
            name: Organization name
            admin_user_id: Principal who becomes the first admin
            notes: Initial platform admin notes

        Raises:
            PermissionDenied: If the acting principal is not the platform admin
            InvariantViolation: If the name or admin principal is empty
        """
        if not await self.evaluator.is_platform_admin(acting_principal):
            raise PermissionDenied("Platform admin access required")

        cleaned = clean_organization_name(name)
        if not admin_user_id or not admin_user_id.strip():
            raise InvariantViolation("Admin principal must not be empty")

        organization = await self.organizations.create(
            name=cleaned,
            created_by_user_id=acting_principal,
            created_by_platform_admin=True,
            platform_admin_notes=notes,
        )
        await self.memberships.create(
            organization_id=organization.id,
            user_id=admin_user_id,
            role=MembershipRole.ADMIN,
            invited_by=acting_principal,
        )
        await self.hooks.run(
            DomainEvent.ORGANIZATION_CREATED,
            self.session,
            organization=organization,
            admin_user_id=admin_user_id,
        )
        await self.audit.log_event(
            AuditAction.CREATE_ORGANIZATION_WITH_ADMIN,
            organization.id,
            {"organization_name": cleaned, "admin_user_id": admin_user_id},
            user_id=acting_principal,
        )

        logger.info(
            "Organization %s provisioned by platform admin for %s",
            organization.id,
            admin_user_id,
        )
        return organization

    # =========================================================================
    # Reads
    # =========================================================================

    async def list_organizations(
        self,
        principal: str,
        include_deleted: bool = True,
    ) -> List[Tuple[Organization, str]]:
        """
        Organizations visible to the principal, with the principal's role.

        Members see their non-deleted organizations. The platform admin
        sees every organization (soft-deleted ones too unless
        include_deleted is False) with role "platform_admin".
        """
        if await self.evaluator.is_platform_admin(principal):
            organizations = await self.organizations.list_all(include_deleted=include_deleted)
            return [(organization, PLATFORM_ADMIN_ROLE) for organization in organizations]

        rows = await self.organizations.list_for_member(principal)
        return [(organization, role.value) for organization, role in rows]

    async def get_organization(self, principal: str, organization_id: int) -> Optional[Organization]:
        """Organization if readable by the principal, None when denied or absent."""
        decision = await self.guard.authorize(
            principal, organization_id, Action.READ, ResourceType.ORGANIZATION
        )
        if not decision:
            return None
        return await self.organizations.get_by_id(organization_id)

    # =========================================================================
    # Updates
    # =========================================================================

    async def rename_organization(
        self, principal: str, organization_id: int, name: str
    ) -> Optional[Organization]:
        """
        Rename an organization. Admins of the organization only.

        Returns:
            The updated organization, None when denied or absent

        Raises:
            InvariantViolation: If the new name is empty
        """
        decision = await self.guard.authorize(
            principal, organization_id, Action.UPDATE, ResourceType.ORGANIZATION
        )
        if not decision:
            return None

        cleaned = clean_organization_name(name)
        organization = await self.organizations.get_by_id(organization_id)
        if organization is None:
            return None

        previous = organization.name
        if previous == cleaned:
            return organization

        organization = await self.organizations.update(organization, name=cleaned)
        await self.audit.log_event(
            AuditAction.UPDATE_ORGANIZATION,
            organization_id,
            {"name": {"before": previous, "after": cleaned}},
            user_id=principal,
        )
        return organization

    async def update_organization_notes(
        self, acting_principal: str, organization_id: int, notes: Optional[str]
    ) -> Organization:
        """
        Replace the platform admin notes.

        Raises:
            PermissionDenied: If the acting principal is not the platform admin
            ResourceNotFoundError: If the organization does not exist
        """
        organization = await self._get_for_platform_admin(acting_principal, organization_id)
        organization = await self.organizations.update(organization, platform_admin_notes=notes)
        await self.audit.log_event(
            AuditAction.UPDATE_ORGANIZATION_NOTES,
            organization_id,
            {},
            user_id=acting_principal,
        )
        return organization

    # =========================================================================
    # Soft-delete lifecycle
    # =========================================================================

    async def soft_delete_organization(
        self, organization_id: int, reason: str, acting_principal: str
    ) -> bool:
        """
        Hide an organization from everyone but the platform admin.

        Args:
            organization_id: Organization to delete
            reason: Freeform reason, appended to the notes
            acting_principal: Must be the platform admin

        Returns:
            True if the organization was deleted, False if it already was

        Raises:
            PermissionDenied: If the acting principal is not the platform admin
            ResourceNotFoundError: If the organization does not exist
        """
        organization = await self._get_for_platform_admin(acting_principal, organization_id)
        if organization.is_deleted:
            logger.info("Organization %s is already deleted", organization_id)
            return False

        now = utcnow()
        notes = _append_note(
            organization.platform_admin_notes,
            f"DELETED: {reason or 'no reason given'} (at {now.isoformat()})",
        )
        await self.organizations.mark_deleted(organization, acting_principal, now, notes)
        await self.audit.log_event(
            AuditAction.SOFT_DELETE_ORGANIZATION,
            organization_id,
            {"reason": reason, "organization_name": organization.name},
            user_id=acting_principal,
        )

        logger.warning("Organization %s soft-deleted by %s", organization_id, acting_principal)
        return True

    async def restore_organization(self, organization_id: int, acting_principal: str) -> bool:
        """
        Make a soft-deleted organization visible to its members again.

        Returns:
            True if restored, False if the organization was not deleted

        Raises:
            PermissionDenied: If the acting principal is not the platform admin
            ResourceNotFoundError: If the organization does not exist
        """
        organization = await self._get_for_platform_admin(acting_principal, organization_id)
        if not organization.is_deleted:
            logger.info("Organization %s is not deleted; nothing to restore", organization_id)
            return False

        now = utcnow()
        notes = _append_note(
            organization.platform_admin_notes,
            f"RESTORED by platform admin at {now.isoformat()}",
        )
        await self.organizations.clear_deleted(organization, notes)
        await self.audit.log_event(
            AuditAction.RESTORE_ORGANIZATION,
            organization_id,
            {"organization_name": organization.name},
            user_id=acting_principal,
        )

        logger.warning("Organization %s restored by %s", organization_id, acting_principal)
        return True

    async def _get_for_platform_admin(
        self, acting_principal: str, organization_id: int
    ) -> Organization:
        if not await self.evaluator.is_platform_admin(acting_principal):
            raise PermissionDenied(
                "Platform admin access required",
                organization_id=organization_id,
            )
        organization = await self.organizations.get_by_id(organization_id)
        if organization is None:
            raise ResourceNotFoundError(
                "Organization not found",
                resource_type="organization",
                resource_id=organization_id,
            )
        return organization
