"""
Membership and Organization DAO Tests.

WHAT: Unit tests for MembershipDAO, OrganizationDAO and the generic
BaseDAO operations they inherit, plus the row locks taken for the
last-admin check.

WHY: These DAOs back every lifecycle operation. The listing helpers
encode the soft-delete visibility rule and the uniqueness constraint on
(organization, user) is the last line of defence against duplicate
memberships.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.dao.membership import MembershipDAO
from tenantguard.dao.organization import OrganizationDAO
from tenantguard.models.base import utcnow
from tenantguard.models.membership import MembershipRole
from tests.factories import (
    MembershipFactory,
    OrganizationFactory,
    ORG_ADMIN,
    ORG_MEMBER,
    ORG_VIEWER,
    OUTSIDER,
)


@pytest.mark.asyncio
class TestMembershipDAO:
    """Tests for membership reads and writes."""

    async def test_get_membership(self, db_session: AsyncSession, test_org):
        dao = MembershipDAO(db_session)

        membership = await dao.get_membership(test_org.id, ORG_VIEWER)

        assert membership is not None
        assert membership.role == MembershipRole.VIEWER
        assert await dao.get_membership(test_org.id, OUTSIDER) is None

    async def test_duplicate_membership_rejected_by_store(self, db_session: AsyncSession, test_org):
        with pytest.raises(IntegrityError):
            await MembershipFactory.create(db_session, test_org, ORG_MEMBER, MembershipRole.VIEWER)

    async def test_list_for_organization(self, db_session: AsyncSession, test_org, other_org):
        members = await MembershipDAO(db_session).list_for_organization(test_org.id)

        assert {m.user_id for m in members} == {ORG_ADMIN, ORG_MEMBER, ORG_VIEWER}

    async def test_lock_admins_returns_only_admins(self, db_session: AsyncSession, test_org):
        await MembershipFactory.create(db_session, test_org, "second-admin", MembershipRole.ADMIN)

        admins = await MembershipDAO(db_session).lock_admins(test_org.id)

        assert [a.user_id for a in admins] == [ORG_ADMIN, "second-admin"]

    async def test_admin_lock_query_locks_rows(self):
        """
        The admin rows are read with SELECT ... FOR UPDATE.

        WHY: Two concurrent demotions of different admins must not both
        see two admins. SQLite ignores the clause, so the statement is
        compiled for PostgreSQL.
        """
        sql = str(MembershipDAO.admin_lock_query(1).compile(dialect=postgresql.dialect()))

        assert "FOR UPDATE" in sql
        assert "memberships.role" in sql

    async def test_count_by_role_zero_filled(self, db_session: AsyncSession):
        org = await OrganizationFactory.create(db_session, name="Solo")
        await MembershipFactory.create(db_session, org, "solo-admin", MembershipRole.ADMIN)

        counts = await MembershipDAO(db_session).count_by_role(org.id)

        assert counts == {
            MembershipRole.ADMIN: 1,
            MembershipRole.MEMBER: 0,
            MembershipRole.VIEWER: 0,
        }

    async def test_remove(self, db_session: AsyncSession, test_org):
        dao = MembershipDAO(db_session)
        membership = await dao.get_membership(test_org.id, ORG_VIEWER)

        await dao.remove(membership)

        assert await dao.get_membership(test_org.id, ORG_VIEWER) is None
        assert len(await dao.list_for_organization(test_org.id)) == 2

    async def test_role_stored_by_value(self, db_session: AsyncSession, test_org):
        """
        Roles persist as "admin"/"member"/"viewer".

        WHY: The column is shared with the migration's enum type, which
        uses the lower-case values.
        """
        result = await db_session.execute(
            text("SELECT role FROM memberships WHERE user_id = :user_id"),
            {"user_id": ORG_ADMIN},
        )
        assert result.scalar_one() == "admin"


@pytest.mark.asyncio
class TestOrganizationDAO:
    """Tests for organization listings and soft-delete writes."""

    async def test_get_active_skips_deleted(self, db_session: AsyncSession):
        deleted = await OrganizationFactory.create(db_session, name="Gone", deleted=True)
        dao = OrganizationDAO(db_session)

        assert await dao.get_active(deleted.id) is None
        assert await dao.get_by_id(deleted.id) is not None

    async def test_list_all(self, db_session: AsyncSession):
        await OrganizationFactory.create(db_session, name="Beta")
        await OrganizationFactory.create(db_session, name="Alpha", deleted=True)
        dao = OrganizationDAO(db_session)

        assert [o.name for o in await dao.list_all()] == ["Alpha", "Beta"]
        assert [o.name for o in await dao.list_all(include_deleted=False)] == ["Beta"]

    async def test_list_for_member_excludes_deleted(self, db_session: AsyncSession, test_org):
        hidden = await OrganizationFactory.create(db_session, name="Hidden", deleted=True)
        await MembershipFactory.create(db_session, hidden, ORG_MEMBER, MembershipRole.ADMIN)

        rows = await OrganizationDAO(db_session).list_for_member(ORG_MEMBER)

        assert [(org.id, role) for org, role in rows] == [(test_org.id, MembershipRole.MEMBER)]

    async def test_mark_and_clear_deleted(self, db_session: AsyncSession, test_org):
        dao = OrganizationDAO(db_session)
        now = utcnow()

        org = await dao.mark_deleted(test_org, "platform-admin", now, "DELETED: fraud")
        assert org.is_deleted
        assert org.deleted_by == "platform-admin"

        org = await dao.clear_deleted(org, "DELETED: fraud\nRESTORED")
        assert not org.is_deleted
        assert org.deleted_by is None
        assert org.platform_admin_notes.endswith("RESTORED")

    async def test_base_dao_helpers(self, db_session: AsyncSession, test_org, other_org):
        dao = OrganizationDAO(db_session)

        assert (await dao.get_by_id(other_org.id)).name == "Globex"
        assert await dao.get_by_id(999999) is None

        await dao.update(test_org, name="Renamed")
        assert (await dao.get_by_id(test_org.id)).name == "Renamed"
