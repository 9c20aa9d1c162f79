"""Authorization core schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

WHAT: Creates organizations, memberships, platform_admin_config,
invitations and audit_events.

WHY: These five tables are the whole persisted state of the
authorization core:
- organizations carry the soft-delete fields
- memberships are the ground truth for tenancy, unique per (org, user)
- platform_admin_config holds at most one row (UNIQUE singleton_key)
- invitations allow one pending invitation per (org, email)
- audit_events is append-only, indexed by organization and time

HOW: Enum types are created once up front because memberships and
invitations share membershiprole.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


membership_role = postgresql.ENUM('admin', 'member', 'viewer', name='membershiprole', create_type=False)
invitation_status = postgresql.ENUM(
    'pending', 'accepted', 'expired', 'revoked', name='invitationstatus', create_type=False
)


def upgrade() -> None:
    bind = op.get_bind()
    membership_role.create(bind, checkfirst=True)
    invitation_status.create(bind, checkfirst=True)

    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.String(length=255), nullable=True),
        sa.Column('created_by_platform_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by_user_id', sa.String(length=255), nullable=True),
        sa.Column('platform_admin_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_organizations_id', 'organizations', ['id'])
    op.create_index('ix_organizations_name', 'organizations', ['name'])
    # Most lookups only ever touch live tenants
    op.create_index(
        'ix_organizations_active',
        'organizations',
        ['id'],
        postgresql_where=sa.text('deleted_at IS NULL'),
    )

    op.create_table(
        'memberships',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('role', membership_role, nullable=False, server_default='member'),
        sa.Column('invited_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'user_id', name='uq_memberships_org_user'),
    )
    op.create_index('ix_memberships_id', 'memberships', ['id'])
    op.create_index('ix_memberships_organization_id', 'memberships', ['organization_id'])
    op.create_index('ix_memberships_user_id', 'memberships', ['user_id'])
    op.create_index('ix_memberships_org_role', 'memberships', ['organization_id', 'role'])

    op.create_table(
        'platform_admin_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('singleton_key', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('platform_admin_user_id', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('singleton_key', name='uq_platform_admin_config_singleton'),
        # singleton_key can only ever be TRUE, so UNIQUE allows one row
        sa.CheckConstraint('singleton_key', name='ck_platform_admin_config_singleton_true'),
    )
    op.create_index('ix_platform_admin_config_id', 'platform_admin_config', ['id'])

    op.create_table(
        'invitations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', membership_role, nullable=False, server_default='member'),
        sa.Column('invited_by', sa.String(length=255), nullable=False),
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('status', invitation_status, nullable=False, server_default='pending'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_by', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invitations_id', 'invitations', ['id'])
    op.create_index('ix_invitations_organization_id', 'invitations', ['organization_id'])
    op.create_index('ix_invitations_email', 'invitations', ['email'])
    op.create_index('ix_invitations_token', 'invitations', ['token'], unique=True)
    op.create_index(
        'uq_invitations_pending_org_email',
        'invitations',
        ['organization_id', 'email'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('resource_type', sa.String(length=100), nullable=False),
        sa.Column('resource_id', sa.String(length=255), nullable=True),
        sa.Column('metadata', postgresql.JSONB().with_variant(sa.JSON(), 'sqlite'), nullable=False,
                  server_default=sa.text("'{}'")),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_events_id', 'audit_events', ['id'])
    op.create_index('ix_audit_events_action', 'audit_events', ['action'])
    op.create_index('ix_audit_events_org_created', 'audit_events', ['organization_id', 'created_at'])
    op.create_index('ix_audit_events_user_created', 'audit_events', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('audit_events')
    op.drop_table('invitations')
    op.drop_table('platform_admin_config')
    op.drop_table('memberships')
    op.drop_table('organizations')

    bind = op.get_bind()
    invitation_status.drop(bind, checkfirst=True)
    membership_role.drop(bind, checkfirst=True)
