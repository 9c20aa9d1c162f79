"""
Invitation model.

WHAT: A pending offer for an email address to join an organization with
a given role.

WHY: Invitation acceptance is one of the three ways a Membership comes
into existence. The token is the only credential needed to accept, so
it is random, unique and expires.
"""

import enum
from sqlalchemy import Column, Integer, String, Enum, ForeignKey, DateTime, Index, text

from tenantguard.models.base import (
    Base,
    TimestampMixin,
    PrimaryKeyMixin,
    as_utc,
    enum_values,
    utcnow,
)
from tenantguard.models.membership import MembershipRole


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    REVOKED = "revoked"


class Invitation(Base, PrimaryKeyMixin, TimestampMixin):
    """Invitation to join an organization."""

    __tablename__ = "invitations"
    __table_args__ = (
        # At most one pending invitation per (organization, email)
        Index(
            "uq_invitations_pending_org_email",
            "organization_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Stored lower-cased
    email = Column(String(255), nullable=False, index=True)
    role = Column(
        Enum(MembershipRole, name="membershiprole", values_callable=enum_values),
        nullable=False,
        default=MembershipRole.MEMBER,
    )
    invited_by = Column(String(255), nullable=False)

    token = Column(String(128), nullable=False, unique=True, index=True)
    status = Column(
        Enum(InvitationStatus, name="invitationstatus", values_callable=enum_values),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    accepted_by = Column(String(255), nullable=True)


    @property
    def is_expired(self) -> bool:
        return as_utc(self.expires_at) <= utcnow()

    def __repr__(self) -> str:
        return (
            f"<Invitation(id={self.id}, organization_id={self.organization_id}, "
            f"email={self.email}, status={self.status.value})>"
        )
