"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import os

# Settings are read at import time; the identity provider secret is required
os.environ.setdefault("IDP_JWT_SECRET", "test-identity-provider-secret")

import pytest
import pytest_asyncio
from typing import AsyncGenerator, Callable, Dict, List
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from tenantguard.main import app
from tenantguard.models.base import Base
from tenantguard.db.session import get_db
from tenantguard.models.membership import MembershipRole
from tenantguard.core.auth import issue_identity_token
from tenantguard.services.guard import register_tenant_resource, unregister_tenant_resource
from tenantguard.services.permissions import platform_admin_registry

from tests.factories import (
    MembershipFactory,
    OrganizationFactory,
    PlatformAdminFactory,
    Upload,
    PLATFORM_ADMIN,
    ORG_ADMIN,
    ORG_MEMBER,
    ORG_VIEWER,
    OUTSIDER,
)


# Test database URL
# WHY: Using SQLite for tests eliminates external database dependencies
# and makes tests faster. For concurrency behaviour, use PostgreSQL.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class QueryCounter:
    """Records SELECT statements executed against the test engine."""

    def __init__(self):
        self.statements: List[str] = []

    @property
    def count(self) -> int:
        return len(self.statements)

    def reset(self) -> None:
        self.statements.clear()

    def __call__(self, conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            self.statements.append(statement)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope ensures each test gets a fresh database state,
    preventing test pollution and ensuring test isolation.
    """
    engine = create_async_engine(
        TEST_ASYNC_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let
    # SQLAlchemy emit BEGIN itself so begin_nested() works
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session.

    Yields:
        AsyncSession: Database session for the test
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def query_counter(db_engine):
    """
    Count SELECT statements issued during a test.

    WHY: Permission checks are on every request path; tests pin how many
    queries they cost.
    """
    counter = QueryCounter()
    event.listen(db_engine.sync_engine, "before_cursor_execute", counter)
    yield counter
    event.remove(db_engine.sync_engine, "before_cursor_execute", counter)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    Yields:
        AsyncClient: HTTP client for making test requests
    """

    async def override_get_db():
        """Override database dependency with test session."""
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_platform_admin_cache():
    """
    Reset the process-wide platform admin cache around each test.

    WHY: Each test builds a fresh database; a principal cached by an
    earlier test would otherwise leak into the next one.
    """
    platform_admin_registry.invalidate()
    yield
    platform_admin_registry.invalidate()


@pytest.fixture
def uploads_registered():
    """Register the test-only uploads table as a tenant resource."""
    register_tenant_resource("uploads", Upload)
    yield Upload
    unregister_tenant_resource("uploads")


@pytest.fixture
def auth_headers() -> Callable[[str], Dict[str, str]]:
    """
    Build Authorization headers for a principal.

    Usage:
        response = await client.get("/api/organizations", headers=auth_headers("user-admin"))
    """

    def _headers(principal: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {issue_identity_token(principal)}"}

    return _headers


@pytest_asyncio.fixture
async def platform_admin(db_session: AsyncSession) -> str:
    """Provision the platform admin principal."""
    await PlatformAdminFactory.provision(db_session, PLATFORM_ADMIN)
    return PLATFORM_ADMIN


@pytest_asyncio.fixture
async def test_org(db_session: AsyncSession):
    """
    Organization with one admin, one member and one viewer.

    WHY: Most authorization tests need each role present in the same
    tenant to compare outcomes.
    """
    org = await OrganizationFactory.create(db_session, name="Acme")
    await MembershipFactory.create(db_session, org, ORG_ADMIN, MembershipRole.ADMIN)
    await MembershipFactory.create(db_session, org, ORG_MEMBER, MembershipRole.MEMBER)
    await MembershipFactory.create(db_session, org, ORG_VIEWER, MembershipRole.VIEWER)
    return org


@pytest_asyncio.fixture
async def other_org(db_session: AsyncSession):
    """A second tenant the test_org principals do not belong to."""
    org = await OrganizationFactory.create(db_session, name="Globex")
    await MembershipFactory.create(db_session, org, OUTSIDER, MembershipRole.ADMIN)
    return org
