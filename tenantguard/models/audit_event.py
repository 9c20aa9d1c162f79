"""
Audit Event Model.

WHAT: Append-only record of privileged actions and security events.

WHY: Role changes, membership removals and organization lifecycle
transitions must leave a trail that administrators can review and that
the anomaly heuristics aggregate. Rows are never updated or deleted.

HOW: One narrow table indexed by (organization, time) and (user, time),
with a JSON metadata column for event-specific detail.
"""

import enum
from sqlalchemy import Column, Integer, String, Text, JSON, DateTime, Index

from tenantguard.models.base import Base, PrimaryKeyMixin, utcnow


class AuditAction(str, enum.Enum):
    """
    Actions written by the authorization core.

    The column is a plain string so the business layer can record its
    own actions through the same log.
    """

    # Organization lifecycle
    CREATE_ORGANIZATION = "create_organization"
    CREATE_ORGANIZATION_WITH_ADMIN = "create_organization_with_admin"
    UPDATE_ORGANIZATION = "update_organization"
    UPDATE_ORGANIZATION_NOTES = "update_organization_notes"
    SOFT_DELETE_ORGANIZATION = "soft_delete_organization"
    RESTORE_ORGANIZATION = "restore_organization"

    # Membership lifecycle
    ADD_MEMBER = "add_member"
    UPDATE_ROLE = "update_role"
    REMOVE_MEMBER = "remove_member"
    INVITE_USER = "invite_user"
    ACCEPT_INVITATION = "accept_invitation"
    REVOKE_INVITATION = "revoke_invitation"
    RESEND_INVITATION = "resend_invitation"

    # Access summaries
    ACCESS_DENIED = "access_denied"
    READ = "read"


class AuditEvent(Base, PrimaryKeyMixin):
    """
    Immutable audit event.

    Fields:
    - organization_id: tenant context, None for platform-level events
    - user_id: acting principal, None when unknown
    - action: what happened (AuditAction value or business-layer action)
    - resource_type / resource_id: what it happened to
    - event_metadata: event detail (column name "metadata")
    - ip_address / user_agent: request context when available
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_org_created", "organization_id", "created_at"),
        Index("ix_audit_events_user_created", "user_id", "created_at"),
    )

    # No foreign key: denied attempts against absent organizations are recorded too
    organization_id = Column(Integer, nullable=True)
    user_id = Column(String(255), nullable=True)

    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True)

    # 'metadata' is reserved on declarative classes
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)

    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AuditEvent(id={self.id}, action={self.action}, "
            f"organization_id={self.organization_id}, user_id={self.user_id})>"
        )
