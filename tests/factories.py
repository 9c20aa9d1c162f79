"""
Test factories for creating test data.

WHY: Factories provide a consistent, reusable way to create test objects,
reducing duplication and making tests more maintainable. Using factories
instead of manual object creation ensures tests stay consistent when models change.
"""

import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import Column, String
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.models.audit_event import AuditEvent, AuditAction
from tenantguard.models.base import Base, PrimaryKeyMixin, TimestampMixin, TenantScopedMixin, utcnow
from tenantguard.models.invitation import Invitation, InvitationStatus
from tenantguard.models.membership import Membership, MembershipRole
from tenantguard.models.organization import Organization
from tenantguard.models.platform_admin import PlatformAdminConfig
from tenantguard.services.permissions import platform_admin_registry


PLATFORM_ADMIN = "platform-admin"
ORG_ADMIN = "user-admin"
ORG_MEMBER = "user-member"
ORG_VIEWER = "user-viewer"
OUTSIDER = "user-outsider"


class Upload(Base, PrimaryKeyMixin, TimestampMixin, TenantScopedMixin):
    """
    Business-layer table used only by the tests.

    WHY: The authorization core guards tables it does not own; this one
    stands in for them when testing scope_query, owner checks and
    per-resource security metrics.
    """

    __tablename__ = "test_uploads"

    filename = Column(String(255), nullable=False)


async def _save(session: AsyncSession, instance):
    session.add(instance)
    await session.flush()
    await session.refresh(instance)
    return instance


class OrganizationFactory:
    """
    Factory for creating Organization test instances.

    WHY: Centralizes organization creation logic for tests,
    ensuring consistent test data across all test suites.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        name: str = "Test Organization",
        deleted: bool = False,
        deleted_by: Optional[str] = None,
        created_by_user_id: Optional[str] = None,
        platform_admin_notes: Optional[str] = None,
    ) -> Organization:
        """
        Create an organization for testing.

        Args:
            session: Database session
            name: Organization name
            deleted: Create it already soft-deleted
            deleted_by: Principal recorded as deleter
            created_by_user_id: Creator principal
            platform_admin_notes: Initial notes
        """
        org = Organization(
            name=name,
            created_by_user_id=created_by_user_id,
            created_by_platform_admin=False,
            platform_admin_notes=platform_admin_notes,
            deleted_at=utcnow() if deleted else None,
            deleted_by=(deleted_by or PLATFORM_ADMIN) if deleted else None,
        )
        return await _save(session, org)


class MembershipFactory:
    """Factory for creating Membership test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        organization: Organization,
        user_id: str,
        role: MembershipRole = MembershipRole.MEMBER,
        invited_by: Optional[str] = None,
    ) -> Membership:
        membership = Membership(
            organization_id=organization.id,
            user_id=user_id,
            role=role,
            invited_by=invited_by,
        )
        return await _save(session, membership)


class PlatformAdminFactory:
    """Provisions the singleton platform admin directly in the store."""

    @staticmethod
    async def provision(session: AsyncSession, user_id: str = PLATFORM_ADMIN) -> PlatformAdminConfig:
        config = PlatformAdminConfig(singleton_key=True, platform_admin_user_id=user_id)
        config = await _save(session, config)
        platform_admin_registry.invalidate()
        return config


class InvitationFactory:
    """Factory for creating Invitation test instances."""

    @staticmethod
    async def create(
        session: AsyncSession,
        organization: Organization,
        email: str = "invitee@example.com",
        role: MembershipRole = MembershipRole.MEMBER,
        invited_by: str = ORG_ADMIN,
        status: InvitationStatus = InvitationStatus.PENDING,
        expires_at: Optional[datetime] = None,
        token: Optional[str] = None,
    ) -> Invitation:
        """
        Create an invitation for testing.

        Args:
            expires_at: Defaults to one week from now; pass a past time
                for an expired invitation
        """
        invitation = Invitation(
            organization_id=organization.id,
            email=email,
            role=role,
            invited_by=invited_by,
            token=token or secrets.token_urlsafe(32),
            status=status,
            expires_at=expires_at or (utcnow() + timedelta(days=7)),
        )
        return await _save(session, invitation)


class AuditEventFactory:
    """
    Factory for creating AuditEvent test instances.

    WHY: The security heuristics aggregate over many events; creating
    them directly is faster than driving them through services.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        action: AuditAction = AuditAction.READ,
        organization_id: Optional[int] = None,
        user_id: Optional[str] = ORG_MEMBER,
        resource_type: str = "tenant_resource",
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            action=action.value if isinstance(action, AuditAction) else action,
            organization_id=organization_id,
            user_id=user_id,
            resource_type=resource_type,
            event_metadata=metadata or {},
            created_at=created_at or utcnow(),
        )
        return await _save(session, event)

    @staticmethod
    async def create_batch(session: AsyncSession, count: int, **kwargs: Any) -> None:
        for _ in range(count):
            await AuditEventFactory.create(session, **kwargs)


class UploadFactory:
    """Factory for the test-only tenant-scoped Upload table."""

    @staticmethod
    async def create(
        session: AsyncSession,
        organization: Organization,
        created_by: Optional[str] = ORG_MEMBER,
        filename: str = "report.pdf",
    ) -> Upload:
        upload = Upload(
            organization_id=organization.id,
            created_by=created_by,
            filename=filename,
        )
        return await _save(session, upload)
