"""
Platform admin configuration.

WHY: Exactly one principal may act across every tenant. The singleton is
enforced by the store: singleton_key is a constant True (CHECK) under a
UNIQUE constraint, so a second row cannot be inserted no matter what the
application does.
"""

from sqlalchemy import Column, String, Boolean, CheckConstraint, UniqueConstraint

from tenantguard.models.base import Base, TimestampMixin, PrimaryKeyMixin


class PlatformAdminConfig(Base, PrimaryKeyMixin, TimestampMixin):
    """Singleton row naming the platform admin principal."""

    __tablename__ = "platform_admin_config"
    __table_args__ = (
        UniqueConstraint("singleton_key", name="uq_platform_admin_config_singleton"),
        CheckConstraint("singleton_key", name="ck_platform_admin_config_singleton_true"),
    )

    singleton_key = Column(Boolean, nullable=False, default=True)
    platform_admin_user_id = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<PlatformAdminConfig(platform_admin_user_id={self.platform_admin_user_id})>"
