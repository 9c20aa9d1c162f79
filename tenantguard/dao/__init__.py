"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from tenantguard.dao.base import BaseDAO
from tenantguard.dao.organization import OrganizationDAO
from tenantguard.dao.membership import MembershipDAO
from tenantguard.dao.platform_admin import PlatformAdminConfigDAO
from tenantguard.dao.invitation import InvitationDAO
from tenantguard.dao.audit_event import AuditEventDAO, ActivityAggregate

__all__ = [
    "BaseDAO",
    "OrganizationDAO",
    "MembershipDAO",
    "PlatformAdminConfigDAO",
    "InvitationDAO",
    "AuditEventDAO",
    "ActivityAggregate",
]
