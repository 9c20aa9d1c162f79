"""
Invitation Service Tests.

WHAT: Unit tests for InvitationService.

WHY: Accepting an invitation is the only way a principal inserts a
membership for themselves. These tests ensure:
- Only admins invite, list and revoke
- Tokens are single-use and expire, and acceptance locks the row
- Resending reissues the token of a pending invitation
- Invitations into soft-deleted organizations cannot be accepted
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.exceptions import (
    ConflictError,
    InvariantViolation,
    ResourceNotFoundError,
    ValidationError,
)
from tenantguard.dao.audit_event import AuditEventDAO
from tenantguard.dao.invitation import InvitationDAO
from tenantguard.models.audit_event import AuditAction
from tenantguard.models.base import as_utc, utcnow
from tenantguard.models.invitation import InvitationStatus
from tenantguard.models.membership import MembershipRole
from tenantguard.services.invitation_service import InvitationService, normalize_email
from tenantguard.services.organization_service import OrganizationService
from tests.factories import (
    InvitationFactory,
    ORG_ADMIN,
    ORG_MEMBER,
    ORG_VIEWER,
    PLATFORM_ADMIN,
)


class TestNormalizeEmail:
    def test_lower_and_trim(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize("email", [None, "", "alice", "@example.com", "alice@", "a b@example.com"])
    def test_malformed(self, email):
        with pytest.raises(ValidationError):
            normalize_email(email)


@pytest.mark.asyncio
class TestCreateInvitation:
    """Tests for inviting."""

    async def test_admin_invites(self, db_session: AsyncSession, test_org):
        invitation = await InvitationService(db_session).create_invitation(
            ORG_ADMIN, test_org.id, "Alice@Example.com", MembershipRole.VIEWER
        )

        assert invitation.email == "alice@example.com"
        assert invitation.role == MembershipRole.VIEWER
        assert invitation.status == InvitationStatus.PENDING
        assert len(invitation.token) >= 32
        assert as_utc(invitation.expires_at) > utcnow() + timedelta(days=6)

    async def test_member_cannot_invite(self, db_session: AsyncSession, test_org):
        result = await InvitationService(db_session).create_invitation(ORG_MEMBER, test_org.id, "alice@example.com")
        assert result is None

    async def test_duplicate_pending_rejected(self, db_session: AsyncSession, test_org):
        service = InvitationService(db_session)
        await service.create_invitation(ORG_ADMIN, test_org.id, "alice@example.com")

        with pytest.raises(ConflictError):
            await service.create_invitation(ORG_ADMIN, test_org.id, "ALICE@example.com")

    async def test_expired_pending_replaced(self, db_session: AsyncSession, test_org):
        stale = await InvitationFactory.create(
            db_session, test_org, email="alice@example.com", expires_at=utcnow() - timedelta(days=1)
        )

        fresh = await InvitationService(db_session).create_invitation(ORG_ADMIN, test_org.id, "alice@example.com")

        assert fresh.id != stale.id
        assert stale.status == InvitationStatus.EXPIRED

    async def test_platform_admin_unknown_organization(self, db_session: AsyncSession, platform_admin):
        """The platform admin passes the guard, but the organization must exist."""
        result = await InvitationService(db_session).create_invitation(
            PLATFORM_ADMIN, 999999, "ghost@example.com"
        )

        assert result is None
        assert await InvitationDAO(db_session).get_pending(999999, "ghost@example.com") is None


@pytest.mark.asyncio
class TestAcceptInvitation:
    """Tests for accepting."""

    async def test_accept_creates_membership(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, role=MembershipRole.VIEWER)

        membership = await InvitationService(db_session).accept_invitation(invitation.token, "alice")

        assert membership.organization_id == test_org.id
        assert membership.role == MembershipRole.VIEWER
        assert membership.invited_by == ORG_ADMIN
        assert invitation.status == InvitationStatus.ACCEPTED
        assert invitation.accepted_by == "alice"

    async def test_token_is_single_use(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org)
        service = InvitationService(db_session)
        await service.accept_invitation(invitation.token, "alice")

        with pytest.raises(ConflictError):
            await service.accept_invitation(invitation.token, "mallory")

    async def test_accept_reads_invitation_with_row_lock(self, db_session: AsyncSession, test_org):
        """
        Acceptance reads the invitation with SELECT ... FOR UPDATE.

        WHY: Two principals racing on one token must not both see it
        pending. SQLite ignores the clause, so the statement is compiled
        for PostgreSQL.
        """
        invitation = await InvitationFactory.create(db_session, test_org)
        service = InvitationService(db_session)

        with patch.object(service.invitations, "get_by_token", wraps=service.invitations.get_by_token) as lookup:
            await service.accept_invitation(invitation.token, "alice")

        lookup.assert_awaited_once_with(invitation.token, for_update=True)
        locked = str(InvitationDAO.token_query("t", for_update=True).compile(dialect=postgresql.dialect()))
        plain = str(InvitationDAO.token_query("t").compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in locked
        assert "FOR UPDATE" not in plain

    async def test_unknown_token(self, db_session: AsyncSession):
        with pytest.raises(ResourceNotFoundError):
            await InvitationService(db_session).accept_invitation("no-such-token", "alice")

    async def test_expired(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, expires_at=utcnow() - timedelta(minutes=1))

        with pytest.raises(InvariantViolation, match="expired"):
            await InvitationService(db_session).accept_invitation(invitation.token, "alice")

    async def test_revoked(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, status=InvitationStatus.REVOKED)

        with pytest.raises(InvariantViolation, match="revoked"):
            await InvitationService(db_session).accept_invitation(invitation.token, "alice")

    async def test_existing_member_conflicts(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, role=MembershipRole.ADMIN)

        with pytest.raises(ConflictError):
            await InvitationService(db_session).accept_invitation(invitation.token, ORG_VIEWER)

        assert invitation.status == InvitationStatus.PENDING

    async def test_soft_deleted_organization(self, db_session: AsyncSession, test_org, platform_admin):
        invitation = await InvitationFactory.create(db_session, test_org)
        await OrganizationService(db_session).soft_delete_organization(test_org.id, "closed", PLATFORM_ADMIN)

        with pytest.raises(ResourceNotFoundError):
            await InvitationService(db_session).accept_invitation(invitation.token, "alice")

    async def test_get_valid_invitation_marks_expired(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, expires_at=utcnow() - timedelta(hours=1))

        assert await InvitationService(db_session).get_valid_invitation(invitation.token) is None
        assert invitation.status == InvitationStatus.EXPIRED


@pytest.mark.asyncio
class TestRevokeAndList:
    """Tests for revoking and listing."""

    async def test_admin_revokes(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org)

        assert await InvitationService(db_session).revoke_invitation(ORG_ADMIN, invitation.id) is True
        assert invitation.status == InvitationStatus.REVOKED

    async def test_member_cannot_revoke(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org)

        assert await InvitationService(db_session).revoke_invitation(ORG_MEMBER, invitation.id) is False
        assert invitation.status == InvitationStatus.PENDING

    async def test_revoke_accepted_is_noop(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, status=InvitationStatus.ACCEPTED)

        assert await InvitationService(db_session).revoke_invitation(ORG_ADMIN, invitation.id) is False

    async def test_list_admin_only(self, db_session: AsyncSession, test_org):
        await InvitationFactory.create(db_session, test_org, email="a@example.com")
        await InvitationFactory.create(db_session, test_org, email="b@example.com", status=InvitationStatus.REVOKED)
        service = InvitationService(db_session)

        assert len(await service.list_invitations(ORG_ADMIN, test_org.id)) == 2
        pending = await service.list_invitations(ORG_ADMIN, test_org.id, status=InvitationStatus.PENDING)
        assert [i.email for i in pending] == ["a@example.com"]
        assert await service.list_invitations(ORG_VIEWER, test_org.id) == []

    async def test_invitation_dao_lookup(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, email="a@example.com")

        assert (await InvitationDAO(db_session).get_pending(test_org.id, "A@example.com")).id == invitation.id


@pytest.mark.asyncio
class TestResendInvitation:
    """Tests for reissuing a pending invitation's token."""

    async def test_admin_resends(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(
            db_session, test_org, email="alice@example.com", expires_at=utcnow() + timedelta(hours=1)
        )
        old_token = invitation.token
        service = InvitationService(db_session)

        renewed = await service.resend_invitation(ORG_ADMIN, invitation.id)

        assert renewed.id == invitation.id
        assert renewed.token != old_token
        assert as_utc(renewed.expires_at) > utcnow() + timedelta(days=6)
        assert renewed.status == InvitationStatus.PENDING

        events = await AuditEventDAO(db_session).get_by_organization(
            test_org.id, action=AuditAction.RESEND_INVITATION
        )
        assert len(events) == 1
        assert events[0].event_metadata == {"email": "alice@example.com"}
        assert events[0].user_id == ORG_ADMIN

    async def test_old_token_stops_working(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org)
        old_token = invitation.token
        service = InvitationService(db_session)

        renewed = await service.resend_invitation(ORG_ADMIN, invitation.id)

        with pytest.raises(ResourceNotFoundError):
            await service.accept_invitation(old_token, "alice")
        membership = await service.accept_invitation(renewed.token, "alice")
        assert membership.organization_id == test_org.id

    async def test_expired_pending_renewed(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, expires_at=utcnow() - timedelta(days=1))

        renewed = await InvitationService(db_session).resend_invitation(ORG_ADMIN, invitation.id)

        assert not renewed.is_expired

    async def test_member_cannot_resend(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org)
        old_token = invitation.token

        assert await InvitationService(db_session).resend_invitation(ORG_MEMBER, invitation.id) is None
        assert invitation.token == old_token

    async def test_revoked_not_resent(self, db_session: AsyncSession, test_org):
        invitation = await InvitationFactory.create(db_session, test_org, status=InvitationStatus.REVOKED)

        assert await InvitationService(db_session).resend_invitation(ORG_ADMIN, invitation.id) is None

    async def test_absent_invitation(self, db_session: AsyncSession, test_org):
        assert await InvitationService(db_session).resend_invitation(ORG_ADMIN, 999999) is None
