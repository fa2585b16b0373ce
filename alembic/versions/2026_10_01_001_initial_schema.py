"""Initial schema: tenants, users, memberships, platform roles, entitlements, audit, sessions

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-01

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_initial_schema'
down_revision = None

tenant_status = sa.Enum('ACTIVE', 'SUSPENDED', name='tenantstatus')
membership_rank = sa.Enum('TENANT_OWNER', 'MANAGER', 'MEMBER', name='membershiprank')
platform_rank = sa.Enum('SUPER_ADMIN', 'PLATFORM_ADMIN', name='platformrank')


def upgrade():
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', tenant_status, nullable=False),
        sa.Column('active_until', sa.DateTime(), nullable=True),
        sa.Column('industry', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_tenants_name', 'tenants', ['name'])
    op.create_index('ix_tenants_status', 'tenants', ['status'])

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_users_tenant_email'),
    )
    op.create_index('ix_users_tenant_id', 'users', ['tenant_id'])
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table(
        'memberships',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('rank', membership_rank, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('supervisor_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'tenant_id', name='uq_memberships_user_tenant'),
    )
    op.create_index('ix_memberships_tenant_id', 'memberships', ['tenant_id'])
    op.create_index('ix_memberships_user_id', 'memberships', ['user_id'])
    op.create_index('ix_memberships_rank', 'memberships', ['rank'])
    op.create_index('ix_memberships_is_active', 'memberships', ['is_active'])
    op.create_index('ix_memberships_supervisor_id', 'memberships', ['supervisor_id'])

    op.create_table(
        'platform_roles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', platform_rank, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'role', name='uq_platform_roles_user_role'),
    )
    op.create_index('ix_platform_roles_user_id', 'platform_roles', ['user_id'])

    op.create_table(
        'modules',
        sa.Column('key', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
    )

    op.create_table(
        'entitlements',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('module_key', sa.String(), sa.ForeignKey('modules.key'), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        sa.Column('limits', sa.JSON(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tenant_id', 'module_key', name='uq_entitlements_tenant_module'),
    )
    op.create_index('ix_entitlements_tenant_id', 'entitlements', ['tenant_id'])
    op.create_index('ix_entitlements_module_key', 'entitlements', ['module_key'])

    op.create_table(
        'user_entitlements',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('module_key', sa.String(), sa.ForeignKey('modules.key'), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            'user_id', 'tenant_id', 'module_key',
            name='uq_user_entitlements_user_tenant_module',
        ),
    )
    op.create_index('ix_user_entitlements_user_id', 'user_entitlements', ['user_id'])
    op.create_index('ix_user_entitlements_tenant_id', 'user_entitlements', ['tenant_id'])

    # Append-only; no foreign keys so entries outlive deleted users
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_log_tenant_id', 'audit_log', ['tenant_id'])
    op.create_index('ix_audit_log_actor_user_id', 'audit_log', ['actor_user_id'])
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])

    op.create_table(
        'auth_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('token', sa.String(128), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_auth_sessions_token', 'auth_sessions', ['token'], unique=True)
    op.create_index('ix_auth_sessions_user_id', 'auth_sessions', ['user_id'])
    op.create_index('ix_auth_sessions_expires_at', 'auth_sessions', ['expires_at'])


def downgrade():
    op.drop_table('auth_sessions')
    op.drop_table('audit_log')
    op.drop_table('user_entitlements')
    op.drop_table('entitlements')
    op.drop_table('modules')
    op.drop_table('platform_roles')
    op.drop_table('memberships')
    op.drop_table('users')
    op.drop_table('tenants')

    bind = op.get_bind()
    platform_rank.drop(bind, checkfirst=True)
    membership_rank.drop(bind, checkfirst=True)
    tenant_status.drop(bind, checkfirst=True)
