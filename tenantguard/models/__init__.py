"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from tenantguard.models.base import (
    Base,
    TimestampMixin,
    PrimaryKeyMixin,
    TenantScopedMixin,
    utcnow,
    as_utc,
)
from tenantguard.models.organization import Organization
from tenantguard.models.membership import Membership, MembershipRole
from tenantguard.models.platform_admin import PlatformAdminConfig
from tenantguard.models.invitation import Invitation, InvitationStatus
from tenantguard.models.audit_event import AuditEvent, AuditAction

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "TenantScopedMixin",
    "utcnow",
    "as_utc",
    "Organization",
    "Membership",
    "MembershipRole",
    "PlatformAdminConfig",
    "Invitation",
    "InvitationStatus",
    "AuditEvent",
    "AuditAction",
]
