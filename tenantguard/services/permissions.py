"""
Permission Evaluator and Platform Admin Registry.

WHAT: The privileged read path that answers raw authorization questions:
is this principal a member of the organization, an admin of it, or the
platform admin?

WHY: Enforcement calls evaluation, evaluation never calls enforcement.
If "may I see this membership row?" were answered by the Resource Guard,
and the Guard in turn asked "is this principal a member?" through the
same guarded path, the check would recurse into itself. This module is
the only code allowed to read the Membership Store without going
through the Guard, and it never imports the Guard.

HOW: Each question is a single direct SELECT against memberships (and
organizations for soft-delete state) in the caller's session. The
platform admin principal is cached with a TTL and explicit invalidation.
Infrastructure failures are logged and evaluate to deny.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.core.config import settings
from tenantguard.core.exceptions import InvariantViolation
from tenantguard.dao.platform_admin import PlatformAdminConfigDAO
from tenantguard.models.membership import Membership, MembershipRole
from tenantguard.models.organization import Organization
from tenantguard.models.platform_admin import PlatformAdminConfig


logger = logging.getLogger(__name__)


# ============================================================================
# Platform Admin Registry
# ============================================================================


class PlatformAdminRegistry:
    """
    Cached view of the singleton platform admin.

    WHAT: Answers "who is the platform admin?" with at most one query
    per TTL window.

    WHY: Every Guard decision starts with the platform admin check, so
    it must be cheap. The value changes only through administrative
    provisioning, which invalidates the cache.

    HOW: Process-wide cache of (principal, loaded_at). A TTL of 0
    disables caching. "No admin provisioned" is cached as well.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = (
            settings.PLATFORM_ADMIN_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        )
        self._principal: Optional[str] = None
        self._loaded_at: Optional[float] = None

    def _is_fresh(self) -> bool:
        if self._loaded_at is None or self.ttl_seconds <= 0:
            return False
        return (time.monotonic() - self._loaded_at) < self.ttl_seconds

    def invalidate(self) -> None:
        """Drop the cached principal; the next lookup re-reads the store."""
        self._principal = None
        self._loaded_at = None

    async def get_platform_admin(self, session: AsyncSession) -> Optional[str]:
        """
        Principal of the platform admin, or None if none is provisioned.

        Raises:
            SQLAlchemyError: If the store is unavailable
        """
        if self._is_fresh():
            return self._principal

        principal = await PlatformAdminConfigDAO(session).get_platform_admin_user_id()
        self._principal = principal
        self._loaded_at = time.monotonic()
        return principal

    async def provision(self, session: AsyncSession, user_id: str) -> PlatformAdminConfig:
        """
        Designate the platform admin. Administrative, done once.

        Args:
            session: Database session
            user_id: Principal to designate

        Returns:
            The singleton config row

        Raises:
            InvariantViolation: If a platform admin is already provisioned
        """
        if not user_id or not user_id.strip():
            raise InvariantViolation("Platform admin principal must not be empty")

        dao = PlatformAdminConfigDAO(session)
        existing = await dao.get_platform_admin_user_id()
        if existing is not None:
            raise InvariantViolation("A platform admin is already provisioned")

        try:
            # Savepoint so a concurrent insert leaves the caller's transaction usable
            async with session.begin_nested():
                config = await dao.insert_singleton(user_id)
        except IntegrityError:
            raise InvariantViolation("A platform admin is already provisioned")
        finally:
            self.invalidate()

        logger.info("Platform admin provisioned: %s", user_id)
        return config


platform_admin_registry = PlatformAdminRegistry()


# ============================================================================
# Permission Evaluator
# ============================================================================


@dataclass(frozen=True)
class OrganizationAccess:
    """
    A principal's standing in one organization, read in a single query.

    role is None when the principal has no membership.
    """

    organization_id: int
    is_deleted: bool
    role: Optional[MembershipRole]

    @property
    def is_member(self) -> bool:
        return self.role is not None


class PermissionEvaluator:
    """
    Side-effect-free authorization questions on the privileged read path.

    All methods run in the caller's session, so a decision and the
    operation it gates see the same snapshot. They never raise for an
    infrastructure error: the failure is logged and the answer is deny.

    Example:
        evaluator = PermissionEvaluator(session)
        if await evaluator.is_admin(org_id, principal):
            ...
    """

    def __init__(
        self,
        session: AsyncSession,
        registry: Optional[PlatformAdminRegistry] = None,
    ):
        self.session = session
        self.registry = registry or platform_admin_registry

    async def get_role(self, organization_id: int, user_id: str) -> Optional[MembershipRole]:
        """
        Role of the principal in the organization, None if not a member.

        Exactly one query.
        """
        if not user_id:
            return None
        try:
            result = await self.session.execute(
                select(Membership.role).where(
                    Membership.organization_id == organization_id,
                    Membership.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError:
            logger.exception(
                "Membership lookup failed; denying (organization_id=%s, user_id=%s)",
                organization_id,
                user_id,
            )
            return None

    async def is_member(self, organization_id: int, user_id: str) -> bool:
        """True iff a membership row (organization, user) exists."""
        return await self.get_role(organization_id, user_id) is not None

    async def is_admin(self, organization_id: int, user_id: str) -> bool:
        """True iff the principal holds the admin role in the organization."""
        return await self.get_role(organization_id, user_id) == MembershipRole.ADMIN

    async def is_platform_admin(self, user_id: Optional[str]) -> bool:
        """
        True iff the principal is the one named in PlatformAdminConfig.

        Independent of any membership.
        """
        if not user_id:
            return False
        try:
            platform_admin = await self.registry.get_platform_admin(self.session)
        except SQLAlchemyError:
            logger.exception("Platform admin lookup failed; denying (user_id=%s)", user_id)
            return False
        return platform_admin is not None and platform_admin == user_id

    async def resolve_access(
        self, organization_id: int, user_id: str
    ) -> Optional[OrganizationAccess]:
        """
        Soft-delete state and role for (organization, principal) in one query.

        Returns:
            OrganizationAccess, or None if the organization does not exist
            or the lookup failed
        """
        try:
            result = await self.session.execute(
                select(Organization.id, Organization.deleted_at, Membership.role)
                .outerjoin(
                    Membership,
                    and_(
                        Membership.organization_id == Organization.id,
                        Membership.user_id == user_id,
                    ),
                )
                .where(Organization.id == organization_id)
            )
            row = result.first()
        except SQLAlchemyError:
            logger.exception(
                "Organization access lookup failed; denying (organization_id=%s, user_id=%s)",
                organization_id,
                user_id,
            )
            return None

        if row is None:
            return None
        return OrganizationAccess(
            organization_id=row[0],
            is_deleted=row[1] is not None,
            role=row[2],
        )

    def readable_organization_ids(self, user_id: str):
        """
        Subquery of organization ids the principal may read.

        Non-deleted organizations with a membership for the principal.
        Used by the Guard to scope tenant queries.
        """
        return (
            select(Membership.organization_id)
            .join(Organization, Organization.id == Membership.organization_id)
            .where(
                Membership.user_id == user_id,
                Organization.deleted_at.is_(None),
            )
        )
