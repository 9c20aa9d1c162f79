"""
Base model class for all SQLAlchemy models.

WHY: Centralizing common model functionality (timestamps, ID, tenant
scoping) in a base class keeps every table consistent.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import DeclarativeBase, declared_attr


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a stored timestamp to an aware UTC datetime.

    SQLite drops tzinfo on the way back, PostgreSQL keeps it.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    WHY: DeclarativeBase provides the foundation for SQLAlchemy 2.0 models
    with async support.
    """

    pass


class TimestampMixin:
    """Mixin to add created_at and updated_at timestamps to models."""

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class PrimaryKeyMixin:
    """Mixin to add an integer primary key to models."""

    id = Column(Integer, primary_key=True, index=True)


class TenantScopedMixin:
    """
    Contract for tables whose rows belong to exactly one organization.

    WHY: The Resource Guard scopes reads by organization_id and answers
    owner checks with created_by. Business tables (uploads, tasks, ...)
    mix this in; they are owned by the business layer, not created here.
    """

    @declared_attr
    def organization_id(cls):
        return Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)

    @declared_attr
    def created_by(cls):
        # Opaque principal identifier of the creator
        return Column(String(255), nullable=True, index=True)


def enum_values(enum_cls):
    """Persist enum values ("admin") rather than member names ("ADMIN")."""
    return [member.value for member in enum_cls]
