"""
Resource Guard.

WHAT: The single enforcement entry point for tenant-scoped resources.
`authorize(principal, organization_id, action, ...)` answers allow or
deny for one (resource type, action) pair.

WHY: Authorization lives in one explicit, testable function instead of
a collection of independent rules that each must pass. Its evaluation
order is fixed:

1. Platform admin -> allow (bypasses all scoping, soft delete included)
2. Organization soft-deleted -> deny, for every action
3. read -> role in the policy's read roles (any member by default)
4. create -> role in the policy's create roles (admin or member by default)
5. update/delete -> role in the policy's roles OR the owner check passes

Grants for the same action combine with OR. A denial is a value, not an
exception: callers turn it into an empty result or a rejected write, so
"denied" and "absent" look the same from outside.

HOW: Permission questions are delegated to the PermissionEvaluator,
which reads memberships directly. The Guard never queries memberships
itself and the evaluator never calls back into the Guard.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Optional, Type

from sqlalchemy import false
from sqlalchemy.ext.asyncio import AsyncSession

from tenantguard.models.membership import MembershipRole
from tenantguard.services.permissions import PermissionEvaluator, PlatformAdminRegistry


logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceType(str, enum.Enum):
    """Kinds of organization-scoped resources the Guard knows policies for."""

    ORGANIZATION = "organization"
    MEMBERSHIP = "membership"
    INVITATION = "invitation"
    AUDIT_EVENT = "audit_event"
    # Business-layer rows (uploads, tasks, ...) implementing TenantScopedMixin
    TENANT_RESOURCE = "tenant_resource"


# Checks whether the principal owns the resource being updated or deleted
OwnerCheck = Callable[[str], bool]


def owned_by(created_by: Optional[str]) -> OwnerCheck:
    """
    Owner check for a row whose creator is `created_by`.

    Example:
        await guard.authorize(principal, upload.organization_id, Action.DELETE,
                              owner_check=owned_by(upload.created_by))
    """
    def check(principal: str) -> bool:
        return created_by is not None and created_by == principal

    return check


@dataclass(frozen=True)
class PermissionDecision:
    """
    Outcome of one authorize() call. Truthy when allowed.

    reason is for logs only and is never returned to API callers.
    """

    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls, reason: str) -> "PermissionDecision":
        return cls(True, reason)

    @classmethod
    def deny(cls, reason: str) -> "PermissionDecision":
        return cls(False, reason)


ALL_ROLES: FrozenSet[MembershipRole] = frozenset(MembershipRole)
WRITERS: FrozenSet[MembershipRole] = frozenset({MembershipRole.ADMIN, MembershipRole.MEMBER})
ADMINS: FrozenSet[MembershipRole] = frozenset({MembershipRole.ADMIN})
NOBODY: FrozenSet[MembershipRole] = frozenset()


@dataclass(frozen=True)
class ResourcePolicy:
    """
    Roles granted each action on one resource type.

    owner_actions lists the actions an owner check may additionally grant
    to a member who created the resource.
    """

    roles: Dict[Action, FrozenSet[MembershipRole]]
    owner_actions: FrozenSet[Action] = field(default_factory=frozenset)

    def roles_for(self, action: Action) -> FrozenSet[MembershipRole]:
        return self.roles.get(action, NOBODY)


DEFAULT_TENANT_POLICY = ResourcePolicy(
    roles={
        Action.READ: ALL_ROLES,
        Action.CREATE: WRITERS,
        Action.UPDATE: ADMINS,
        Action.DELETE: ADMINS,
    },
    owner_actions=frozenset({Action.UPDATE, Action.DELETE}),
)

POLICIES: Dict[ResourceType, ResourcePolicy] = {
    ResourceType.TENANT_RESOURCE: DEFAULT_TENANT_POLICY,
    # Creation is not organization-scoped and deletion is the platform
    # admin's soft delete, so neither is granted to any role.
    ResourceType.ORGANIZATION: ResourcePolicy(
        roles={
            Action.READ: ALL_ROLES,
            Action.CREATE: NOBODY,
            Action.UPDATE: ADMINS,
            Action.DELETE: NOBODY,
        },
    ),
    # Members of the same organization may list each other
    ResourceType.MEMBERSHIP: ResourcePolicy(
        roles={
            Action.READ: ALL_ROLES,
            Action.CREATE: ADMINS,
            Action.UPDATE: ADMINS,
            Action.DELETE: ADMINS,
        },
    ),
    ResourceType.INVITATION: ResourcePolicy(
        roles={
            Action.READ: ADMINS,
            Action.CREATE: ADMINS,
            Action.UPDATE: ADMINS,
            Action.DELETE: ADMINS,
        },
    ),
    # Append-only; written by AuditService, never through the Guard
    ResourceType.AUDIT_EVENT: ResourcePolicy(
        roles={Action.READ: ADMINS},
    ),
}


# ============================================================================
# Tenant resource registry
# ============================================================================

_tenant_resources: Dict[str, Type] = {}


def register_tenant_resource(name: str, model: Type) -> None:
    """
    Register a business-layer table with the authorization core.

    Registered tables are counted in the organization security metrics
    as `total_<name>`.

    Args:
        name: Plural resource name, e.g. "uploads"
        model: SQLAlchemy model implementing TenantScopedMixin

    Raises:
        ValueError: If the model has no organization_id column
    """
    if not hasattr(model, "organization_id"):
        raise ValueError(f"{model.__name__} is not tenant-scoped (no organization_id column)")
    _tenant_resources[name] = model


def unregister_tenant_resource(name: str) -> None:
    _tenant_resources.pop(name, None)


def registered_tenant_resources() -> Dict[str, Type]:
    return dict(_tenant_resources)


# ============================================================================
# Resource Guard
# ============================================================================


class ResourceGuard:
    """
    Enforcement wrapper invoked before every tenant-scoped operation.

    Example:
        guard = ResourceGuard(session)
        decision = await guard.authorize(principal, org_id, Action.CREATE)
        if not decision:
            return None
    """

    def __init__(
        self,
        session: AsyncSession,
        evaluator: Optional[PermissionEvaluator] = None,
        registry: Optional[PlatformAdminRegistry] = None,
    ):
        self.session = session
        self.evaluator = evaluator or PermissionEvaluator(session, registry=registry)

    async def authorize(
        self,
        principal: Optional[str],
        organization_id: int,
        action: Action,
        resource_type: ResourceType = ResourceType.TENANT_RESOURCE,
        owner_check: Optional[OwnerCheck] = None,
    ) -> PermissionDecision:
        """
        Decide whether `principal` may perform `action` in the organization.

        Args:
            principal: Acting principal (None denies)
            organization_id: Organization the resource belongs to
            action: read, create, update or delete
            resource_type: Selects the role policy
            owner_check: Optional ownership predicate for update/delete

        Returns:
            PermissionDecision (truthy when allowed)
        """
        decision = await self._evaluate(principal, organization_id, action, resource_type, owner_check)
        if not decision.allowed:
            logger.debug(
                "Denied %s on %s in organization %s for %s: %s",
                action.value,
                resource_type.value,
                organization_id,
                principal,
                decision.reason,
            )
        return decision

    async def _evaluate(
        self,
        principal: Optional[str],
        organization_id: int,
        action: Action,
        resource_type: ResourceType,
        owner_check: Optional[OwnerCheck],
    ) -> PermissionDecision:
        if not principal:
            return PermissionDecision.deny("no principal")

        # Must run first: tenant rules would otherwise mask the override
        if await self.evaluator.is_platform_admin(principal):
            return PermissionDecision.allow("platform admin")

        access = await self.evaluator.resolve_access(organization_id, principal)
        if access is None:
            return PermissionDecision.deny("organization not found")
        if access.is_deleted:
            return PermissionDecision.deny("organization soft-deleted")
        if not access.is_member:
            return PermissionDecision.deny("not a member")

        policy = POLICIES[resource_type]
        if access.role in policy.roles_for(action):
            return PermissionDecision.allow(f"role {access.role.value}")

        if action in policy.owner_actions and owner_check is not None and owner_check(principal):
            return PermissionDecision.allow("resource owner")

        return PermissionDecision.deny(f"role {access.role.value} lacks {action.value}")

    async def scope_query(self, stmt, principal: Optional[str], model: Type):
        """
        Restrict a SELECT over a tenant-scoped model to readable rows.

        The platform admin sees every row; other principals see rows of
        non-deleted organizations they belong to; no principal sees
        nothing.

        Args:
            stmt: SELECT statement over `model`
            principal: Acting principal
            model: Model implementing TenantScopedMixin

        Returns:
            The filtered statement
        """
        if not principal:
            return stmt.where(false())
        if await self.evaluator.is_platform_admin(principal):
            return stmt
        return stmt.where(
            model.organization_id.in_(self.evaluator.readable_organization_ids(principal))
        )
