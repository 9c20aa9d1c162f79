"""
Permission Evaluator and Platform Admin Registry Tests.

WHAT: Unit tests for the privileged read path.

WHY: Every Guard decision starts here. These tests ensure:
- Membership questions cost exactly one query
- The platform admin is independent of memberships
- Provisioning is once-only and invalidates the cache
- Store failures evaluate to deny instead of raising
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.exceptions import InvariantViolation
from tenantguard.dao.platform_admin import PlatformAdminConfigDAO
from tenantguard.models.membership import MembershipRole
from tenantguard.models.platform_admin import PlatformAdminConfig
from tenantguard.services.permissions import PermissionEvaluator, PlatformAdminRegistry
from tests.factories import (
    OrganizationFactory,
    MembershipFactory,
    ORG_ADMIN,
    ORG_MEMBER,
    ORG_VIEWER,
    OUTSIDER,
    PLATFORM_ADMIN,
)


@pytest.mark.asyncio
class TestMembershipQuestions:
    """Tests for is_member / is_admin / get_role."""

    async def test_roles(self, db_session: AsyncSession, test_org):
        evaluator = PermissionEvaluator(db_session)

        assert await evaluator.get_role(test_org.id, ORG_VIEWER) == MembershipRole.VIEWER
        assert await evaluator.is_member(test_org.id, ORG_MEMBER)
        assert await evaluator.is_admin(test_org.id, ORG_ADMIN)
        assert not await evaluator.is_admin(test_org.id, ORG_MEMBER)
        assert not await evaluator.is_member(test_org.id, OUTSIDER)

    async def test_empty_principal(self, db_session: AsyncSession, test_org):
        evaluator = PermissionEvaluator(db_session)

        assert await evaluator.get_role(test_org.id, "") is None
        assert not await evaluator.is_platform_admin(None)

    async def test_is_member_issues_one_query(self, db_session: AsyncSession, test_org, query_counter):
        """
        is_member is a single direct SELECT.

        WHY: It runs on every request path; it must not fan out or call
        back into the Guard.
        """
        evaluator = PermissionEvaluator(db_session)
        query_counter.reset()

        await evaluator.is_member(test_org.id, ORG_MEMBER)

        assert query_counter.count == 1
        assert "memberships" in query_counter.statements[0]

    async def test_resolve_access_issues_one_query(self, db_session: AsyncSession, test_org, query_counter):
        evaluator = PermissionEvaluator(db_session)
        query_counter.reset()

        access = await evaluator.resolve_access(test_org.id, ORG_ADMIN)

        assert query_counter.count == 1
        assert access.role == MembershipRole.ADMIN
        assert access.is_member
        assert not access.is_deleted

    async def test_resolve_access_non_member(self, db_session: AsyncSession, test_org):
        access = await PermissionEvaluator(db_session).resolve_access(test_org.id, OUTSIDER)

        assert access is not None
        assert not access.is_member

    async def test_resolve_access_deleted_and_absent(self, db_session: AsyncSession):
        org = await OrganizationFactory.create(db_session, name="Gone", deleted=True)
        await MembershipFactory.create(db_session, org, ORG_ADMIN, MembershipRole.ADMIN)
        evaluator = PermissionEvaluator(db_session)

        access = await evaluator.resolve_access(org.id, ORG_ADMIN)
        assert access.is_deleted
        assert access.role == MembershipRole.ADMIN

        assert await evaluator.resolve_access(999999, ORG_ADMIN) is None


@pytest.mark.asyncio
class TestPlatformAdmin:
    """Tests for the platform admin check and registry."""

    async def test_platform_admin_needs_no_membership(self, db_session: AsyncSession, test_org, platform_admin):
        evaluator = PermissionEvaluator(db_session)

        assert await evaluator.is_platform_admin(PLATFORM_ADMIN)
        assert not await evaluator.is_member(test_org.id, PLATFORM_ADMIN)
        assert not await evaluator.is_platform_admin(ORG_ADMIN)

    async def test_no_platform_admin_provisioned(self, db_session: AsyncSession):
        assert not await PermissionEvaluator(db_session).is_platform_admin(PLATFORM_ADMIN)

    async def test_cached_within_ttl(self, db_session: AsyncSession, platform_admin, query_counter):
        evaluator = PermissionEvaluator(db_session, registry=PlatformAdminRegistry(ttl_seconds=300))
        query_counter.reset()

        assert await evaluator.is_platform_admin(PLATFORM_ADMIN)
        assert await evaluator.is_platform_admin(PLATFORM_ADMIN)

        assert query_counter.count == 1

    async def test_zero_ttl_disables_cache(self, db_session: AsyncSession, platform_admin, query_counter):
        evaluator = PermissionEvaluator(db_session, registry=PlatformAdminRegistry(ttl_seconds=0))
        query_counter.reset()

        await evaluator.is_platform_admin(PLATFORM_ADMIN)
        await evaluator.is_platform_admin(PLATFORM_ADMIN)

        assert query_counter.count == 2

    async def test_stale_until_invalidated(self, db_session: AsyncSession):
        """A change made behind the registry's back shows up after invalidate()."""
        registry = PlatformAdminRegistry(ttl_seconds=300)
        assert await registry.get_platform_admin(db_session) is None

        await PlatformAdminConfigDAO(db_session).insert_singleton("root")
        assert await registry.get_platform_admin(db_session) is None

        registry.invalidate()
        assert await registry.get_platform_admin(db_session) == "root"

    async def test_provision(self, db_session: AsyncSession):
        registry = PlatformAdminRegistry(ttl_seconds=300)
        assert await registry.get_platform_admin(db_session) is None

        config = await registry.provision(db_session, "root")

        assert config.platform_admin_user_id == "root"
        assert await registry.get_platform_admin(db_session) == "root"

    async def test_provision_twice_rejected(self, db_session: AsyncSession, platform_admin):
        """Exactly one platform admin can exist."""
        registry = PlatformAdminRegistry()

        with pytest.raises(InvariantViolation):
            await registry.provision(db_session, "someone-else")

        assert await registry.get_platform_admin(db_session) == PLATFORM_ADMIN

    async def test_provision_empty_principal(self, db_session: AsyncSession):
        with pytest.raises(InvariantViolation):
            await PlatformAdminRegistry().provision(db_session, "  ")

    async def test_store_rejects_second_row_with_false_key(self, db_session: AsyncSession, platform_admin):
        """
        A second row cannot slip past UNIQUE by using singleton_key=False.

        WHY: The CHECK constraint pins the key to True, so UNIQUE on a
        single possible value allows one row at most.
        """
        db_session.add(PlatformAdminConfig(singleton_key=False, platform_admin_user_id="shadow-admin"))

        with pytest.raises(IntegrityError):
            await db_session.flush()


@pytest.mark.asyncio
class TestStoreFailures:
    """Infrastructure errors evaluate to deny."""

    @pytest.fixture
    def broken_session(self):
        session = AsyncMock(spec=AsyncSession)
        session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
        return session

    async def test_membership_lookup_failure_denies(self, broken_session, caplog):
        evaluator = PermissionEvaluator(broken_session, registry=PlatformAdminRegistry(ttl_seconds=0))

        assert not await evaluator.is_member(1, ORG_MEMBER)
        assert await evaluator.resolve_access(1, ORG_MEMBER) is None
        assert "denying" in caplog.text

    async def test_platform_admin_lookup_failure_denies(self, broken_session):
        evaluator = PermissionEvaluator(broken_session, registry=PlatformAdminRegistry(ttl_seconds=0))

        assert not await evaluator.is_platform_admin(PLATFORM_ADMIN)
