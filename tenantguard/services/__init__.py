"""
Business logic services package.

WHY: Services contain business logic separated from API routes and data access,
following the three-layer architecture (API → Service → DAO).

The Permission Evaluator (permissions) is the only service that reads
memberships without asking the Resource Guard (guard) first.
"""

from tenantguard.services.permissions import (
    OrganizationAccess,
    PermissionEvaluator,
    PlatformAdminRegistry,
    platform_admin_registry,
)
from tenantguard.services.guard import (
    Action,
    OwnerCheck,
    PermissionDecision,
    ResourceGuard,
    ResourcePolicy,
    ResourceType,
    owned_by,
    register_tenant_resource,
)
from tenantguard.services.hooks import DomainEvent, HookRegistry, hook_registry
from tenantguard.services.audit import AuditService, SecurityMetric, SuspiciousActivity
from tenantguard.services.organization_service import OrganizationService
from tenantguard.services.membership_service import MembershipService
from tenantguard.services.invitation_service import InvitationService

__all__ = [
    "OrganizationAccess",
    "PermissionEvaluator",
    "PlatformAdminRegistry",
    "platform_admin_registry",
    "Action",
    "OwnerCheck",
    "PermissionDecision",
    "ResourceGuard",
    "ResourcePolicy",
    "ResourceType",
    "owned_by",
    "register_tenant_resource",
    "DomainEvent",
    "HookRegistry",
    "hook_registry",
    "AuditService",
    "SecurityMetric",
    "SuspiciousActivity",
    "OrganizationService",
    "MembershipService",
    "InvitationService",
]
