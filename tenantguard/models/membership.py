"""
Membership model.

WHY: The Membership table is the ground truth for tenancy: a principal
belongs to an organization iff a row (organization_id, user_id) exists,
and the row's role decides what they may do there.
"""

import enum
from sqlalchemy import Column, Integer, String, Enum, ForeignKey, Index, UniqueConstraint

from tenantguard.models.base import Base, TimestampMixin, PrimaryKeyMixin, enum_values


class MembershipRole(str, enum.Enum):
    """
    Role within one organization.

    admin: full control including membership management
    member: read and write, no membership management
    viewer: read-only
    """

    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class Membership(Base, PrimaryKeyMixin, TimestampMixin):
    """(organization, principal, role) fact."""

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_memberships_org_user"),
        Index("ix_memberships_org_role", "organization_id", "role"),
    )

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Opaque principal identifier from the identity provider
    user_id = Column(String(255), nullable=False, index=True)

    role = Column(
        Enum(MembershipRole, name="membershiprole", values_callable=enum_values),
        nullable=False,
        default=MembershipRole.MEMBER,
    )

    # Principal who created this membership (None for self-enrollment)
    invited_by = Column(String(255), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == MembershipRole.ADMIN

    def __repr__(self) -> str:
        return (
            f"<Membership(organization_id={self.organization_id}, "
            f"user_id={self.user_id}, role={self.role.value})>"
        )
