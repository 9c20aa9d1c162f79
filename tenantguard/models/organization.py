"""
Organization model.

WHY: Organizations are the unit of data isolation. Every tenant-scoped
row carries an organization_id, and every authorization decision is
asked relative to one organization.
"""

from sqlalchemy import Column, String, Text, Boolean, DateTime, Index, text

from tenantguard.models.base import Base, TimestampMixin, PrimaryKeyMixin


class Organization(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Organization (tenant).

    Lifecycle: Active --soft_delete--> Deleted --restore--> Active.
    Rows are never hard-deleted; deleted_at marks an organization hidden
    from everyone except the platform admin.
    """

    __tablename__ = "organizations"
    __table_args__ = (
        Index(
            "ix_organizations_active",
            "id",
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    name = Column(String(255), nullable=False, index=True)

    # Soft delete
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String(255), nullable=True)

    # Provenance
    # WHY: Platform-admin provisioned organizations are created on behalf
    # of another principal; created_by_user_id records who actually
    # triggered creation.
    created_by_platform_admin = Column(Boolean, nullable=False, default=False)
    created_by_user_id = Column(String(255), nullable=True)

    # Freeform platform admin notes; soft-delete and restore append to it
    platform_admin_notes = Column(Text, nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name}, deleted={self.is_deleted})>"
